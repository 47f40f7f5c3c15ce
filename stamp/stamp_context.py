"""
Scope chains for annotations and the factory that turns them into evaluation environments.

`ContextRoot` owns every scope created while one document is stamped.
Each branch is reachable through an opaque context key, which is written
onto the tags nested inside the construct that created the branch.
"""

import itertools
import logging
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from stamp.stamp_datatypes import Scope, ContextKeyError, ProcessorContext
from stamp.stamp_interpreter import EvaluationContext
from stamp.stamp_invokers import Invokers, MethodResolver, ReflectiveMethodResolver, stream_invokers

logger = logging.getLogger(__name__)

# Bound in every scope to the scope's own subject.
THIS = "this"


class ContextStack:
    """A view on a scope chain, innermost first."""

    def __init__(self, scope: Scope):
        self.scope = scope

    def peek(self) -> Any:
        return self.scope.subject

    def push(self, subject: Any) -> Scope:
        self.scope = Scope(parent=self.scope, subject=subject)
        self.scope[THIS] = subject
        return self.scope

    def pop(self) -> Scope:
        parent = self.scope.parent
        if parent is None:
            raise IndexError("cannot pop the root scope")
        popped, self.scope = self.scope, parent
        return popped

    def lookup(self, name: str, default: Any = None) -> Any:
        return self.scope.get(name, default)

    def __contains__(self, name: str) -> bool:
        return name in self.scope

    def __iter__(self) -> Iterator[Scope]:
        cur = self.scope
        while cur is not None:
            yield cur
            cur = cur.parent

    def __len__(self) -> int:
        return self.scope.depth + 1

    def __repr__(self):
        return f"<ContextStack depth={len(self)}>"


class ContextRoot:
    def __init__(self, root_object: Any, variables: Optional[Mapping[str, Any]] = None):
        self.root = Scope(subject=root_object)
        self.root[THIS] = root_object
        for k, v in (variables or {}).items():
            self.root[k] = v
        self._branches: Dict[str, Scope] = {}
        self._ids = itertools.count(1)

    def _scope_for(self, key: Optional[str]) -> Scope:
        if key is None or key == "":
            return self.root
        if not isinstance(key, str):
            raise ContextKeyError(key)
        try:
            return self._branches[key]
        except KeyError:
            raise ContextKeyError(key) from None

    def find(self, key: Optional[str]) -> ContextStack:
        """Returns the scope chain a context key points at. No key means the root."""
        return ContextStack(self._scope_for(key))

    def branch(self, parent_key: Optional[str], subject: Any) -> str:
        """Pushes a scope for subject below parent_key and returns its key."""
        stack = self.find(parent_key)
        scope = stack.push(subject)
        key = str(next(self._ids))
        self._branches[key] = scope
        logger.debug("Branched context %s from %r (depth %d)", key, parent_key, scope.depth)
        return key

    def __len__(self) -> int:
        return len(self._branches)


ProcessorFactory = Callable[[ProcessorContext, Any], Any]


class EvaluationContextFactory:
    """Builds one fresh EvaluationContext per annotation.

    Resolution order: processors bound to the annotation, the session
    invokers, then public methods on the target itself.
    """
    def __init__(self, invokers: Invokers, processor_factories: Optional[Mapping[type, ProcessorFactory]] = None,
                 session: Any = None):
        self.invokers = invokers
        self.processor_factories = dict(processor_factories or {})
        self.session = session

    def create(self, processor_context: ProcessorContext, context_stack: ContextStack) -> EvaluationContext:
        processors = {
            interface: factory(processor_context, self.session)
            for interface, factory in self.processor_factories.items()
        }
        resolvers: List[MethodResolver] = []
        if processors:
            resolvers.append(Invokers(stream_invokers(processors)))
        resolvers.append(self.invokers)
        resolvers.append(ReflectiveMethodResolver())
        return EvaluationContext(context_stack, resolvers, processor_context)
