"""
The stamp expression interpreter, containing the EvaluationContext and Evaluator.
"""
import collections.abc
import logging
import operator
from typing import Any, List, Optional

from stamp.stamp_datatypes import (
    Node, Literal, ListLiteral, Variable, Attribute, IndexAccess,
    FunctionCall, MethodCall, UnaryOp, BinaryOp, Conditional,
    EvaluationError, PathNotFound, MethodNotFound, ProcessorContext,
)
from stamp.stamp_invokers import MethodResolver
from stamp.stamp_transformer import ExpressionParser

logger = logging.getLogger(__name__)

_BINARY_OPS = {
    '+': operator.add,
    '-': operator.sub,
    '*': operator.mul,
    '/': operator.truediv,
    '%': operator.mod,
    '==': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


class EvaluationContext:
    """The environment one expression is evaluated in.

    Variables come from the context stack; operation calls are resolved
    by asking each method resolver in turn.
    """
    def __init__(self, context_stack, method_resolvers: List[MethodResolver],
                 processor_context: Optional[ProcessorContext] = None):
        self.context_stack = context_stack
        self.method_resolvers = list(method_resolvers)
        self.processor_context = processor_context

    @property
    def root_object(self) -> Any:
        return self.context_stack.peek()

    def lookup_variable(self, name: str) -> Any:
        scope = self.context_stack.scope
        if name not in scope:
            raise PathNotFound(name)
        return scope[name]

    def resolve_method(self, target: Any, name: str, argument_types: List[Any]):
        for resolver in self.method_resolvers:
            executor = resolver.resolve(self, target, name, argument_types)
            if executor is not None:
                return executor
        return None


class Evaluator:
    """Walks expression AST nodes against an EvaluationContext."""

    def __init__(self, parser: Optional[ExpressionParser] = None):
        self.parser = parser or ExpressionParser()
        self.call_stack: List[dict] = []

    def evaluate(self, expression: str, context: EvaluationContext) -> Any:
        """Parses and evaluates one expression."""
        node = self.parser.parse(expression)
        return self.eval(node, context)

    def _push_frame(self, name, args, node):
        self.call_stack.append({'name': name, 'args': args, 'call_site': getattr(node, 'loc', None)})

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def eval(self, node: Node, context: EvaluationContext) -> Any:
        match node:
            case Literal(value=value):
                return value
            case ListLiteral(items=items):
                return [self.eval(item, context) for item in items]
            case Variable(name=name):
                return context.lookup_variable(name)
            case Attribute(target=target, name=name):
                return self._read_field(self.eval(target, context), name)
            case IndexAccess(target=target, index=index):
                container = self.eval(target, context)
                key = self.eval(index, context)
                try:
                    return container[key]
                except (KeyError, IndexError, TypeError) as e:
                    raise EvaluationError(f"Cannot index {type(container).__name__} with {key!r}") from e
            case FunctionCall(name=name, args=args):
                return self.call(context.root_object, name, [self.eval(a, context) for a in args], context, node)
            case MethodCall(target=target, name=name, args=args):
                receiver = self.eval(target, context)
                return self.call(receiver, name, [self.eval(a, context) for a in args], context, node)
            case UnaryOp(op='-', operand=operand):
                return self._apply(operator.neg, self.eval(operand, context))
            case UnaryOp(op='not', operand=operand):
                return not self.eval(operand, context)
            case BinaryOp(op='and', left=left, right=right):
                return self.eval(left, context) and self.eval(right, context)
            case BinaryOp(op='or', left=left, right=right):
                return self.eval(left, context) or self.eval(right, context)
            case BinaryOp(op=op, left=left, right=right):
                return self._apply(_BINARY_OPS[op], self.eval(left, context), self.eval(right, context))
            case Conditional(test=test, then=then, otherwise=otherwise):
                return self.eval(then if self.eval(test, context) else otherwise, context)
        raise EvaluationError(f"Unknown expression node {node!r}")

    def call(self, target: Any, name: str, args: List[Any], context: EvaluationContext, node: Optional[Node] = None) -> Any:
        """Resolves name against the context's resolvers and invokes the first match."""
        argument_types = [None if a is None else type(a) for a in args]
        executor = context.resolve_method(target, name, argument_types)
        if executor is None:
            raise MethodNotFound(name, argument_types)
        logger.debug("Resolved %s to %r", name, executor)
        self._push_frame(name, args, node)
        try:
            return executor.execute(context, target, *args)
        finally:
            self._pop_frame()

    def _read_field(self, owner: Any, name: str) -> Any:
        if isinstance(owner, collections.abc.Mapping):
            if name in owner:
                return owner[name]
            raise PathNotFound(name)
        if owner is None or name.startswith('_') or not hasattr(owner, name):
            raise PathNotFound(name)
        return getattr(owner, name)

    def _apply(self, fn, *operands):
        try:
            return fn(*operands)
        except (TypeError, ZeroDivisionError) as e:
            raise EvaluationError(f"{type(e).__name__}: {e}") from e
