"""
Parses expression text and transforms the raw lark tree into a semantic AST using stamp_datatypes.
"""

from pathlib import Path
from typing import Optional

from lark import Lark, Transformer
from lark.exceptions import UnexpectedInput, LarkError

from stamp.stamp_datatypes import (
    Node, Literal, ListLiteral, Variable, Attribute, IndexAccess,
    FunctionCall, MethodCall, UnaryOp, BinaryOp, Conditional,
    ExpressionSyntaxError,
)

GRAMMAR_PATH = Path(__file__).parent / "stamp_grammar.lark"


def _unquote(text: str) -> str:
    body = text[1:-1]
    if "\\" not in body:
        return body
    out = []
    chars = iter(body)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append({"n": "\n", "t": "\t"}.get(nxt, nxt))
        else:
            out.append(ch)
    return "".join(out)


class StampTransformer(Transformer):
    def _attach_loc(self, obj: Node, token) -> Node:
        line = getattr(token, 'line', None); col = getattr(token, 'column', None)
        if line is not None and col is not None:
            obj.loc = {'line': line, 'col': col, 'text': str(token)}
        return obj

    # Atomics
    def number(self, children):
        txt = str(children[0])
        # Integers stay exact; anything with a '.' is a float.
        return Literal(float(txt) if '.' in txt else int(txt))

    def string(self, children):
        return Literal(_unquote(str(children[0])))

    def true(self, _):
        return Literal(True)

    def false(self, _):
        return Literal(False)

    def null(self, _):
        return Literal(None)

    def arguments(self, children):
        return list(children)

    def list_literal(self, children):
        items = children[0] if children else None
        return ListLiteral(items or [])

    # Names and calls
    def variable(self, children):
        token = children[0]
        return self._attach_loc(Variable(str(token)), token)

    def function_call(self, children):
        token, args = children
        return self._attach_loc(FunctionCall(str(token), args or []), token)

    def method_call(self, children):
        target, token, args = children
        return self._attach_loc(MethodCall(target, str(token), args or []), token)

    def attribute(self, children):
        target, token = children
        return self._attach_loc(Attribute(target, str(token)), token)

    def index(self, children):
        target, idx = children
        return IndexAccess(target, idx)

    # Operators
    def neg(self, children):
        return UnaryOp('-', children[0])

    def not_op(self, children):
        return UnaryOp('not', children[0])

    def conditional(self, children):
        test, then, otherwise = children
        return Conditional(test, then, otherwise)

    def _binary(op):
        def build(self, children):
            left, right = children
            return BinaryOp(op, left, right)
        build.__name__ = op
        return build

    or_op = _binary('or')
    and_op = _binary('and')
    eq = _binary('==')
    ne = _binary('!=')
    lt = _binary('<')
    le = _binary('<=')
    gt = _binary('>')
    ge = _binary('>=')
    add = _binary('+')
    sub = _binary('-')
    mul = _binary('*')
    div = _binary('/')
    mod = _binary('%')
    del _binary


class ExpressionParser:
    """Parses annotation expressions into AST nodes. The lark parser is built once per process."""

    _lark: Optional[Lark] = None

    def __init__(self):
        if ExpressionParser._lark is None:
            ExpressionParser._lark = Lark(GRAMMAR_PATH.read_text(encoding="utf-8"), parser="lalr")
        self.lark = ExpressionParser._lark
        self.transformer = StampTransformer()

    def parse(self, expression: str) -> Node:
        try:
            tree = self.lark.parse(expression)
        except UnexpectedInput as e:
            line = getattr(e, 'line', -1)
            line = line if line and line > 0 else None
            col = e.column if line is not None else None
            raise ExpressionSyntaxError(expression, type(e).__name__, line, col) from e
        except LarkError as e:
            raise ExpressionSyntaxError(expression, str(e)) from e
        return self.transformer.transform(tree)
