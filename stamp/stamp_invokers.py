"""
Method resolution for the expression evaluator.

`Invokers` indexes callables by name and argument signature. It is
built once from two kinds of catalogs: interface classes bound to an
implementation object (every public function declared on the interface
becomes one entry), and explicit `CustomFunction`s.

Resolution is first-match in registration order, not best-match: when
two signatures under the same name both accept the arguments, the one
registered first wins.
"""

import inspect
import logging
import types
import typing
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from stamp.stamp_datatypes import Args, CustomFunction, WILDCARD, AccessError

logger = logging.getLogger(__name__)


# ===================================================================
# Executors
# ===================================================================

class MethodExecutor(ABC):
    """Something the evaluator can invoke once resolution succeeded."""

    @abstractmethod
    def execute(self, context: Any, target: Any, *arguments: Any) -> Any:
        raise NotImplementedError


class MethodResolver(ABC):

    @abstractmethod
    def resolve(self, context: Any, target: Any, name: str, argument_types: List[Any]) -> Optional[MethodExecutor]:
        raise NotImplementedError


def _describe_failure(name: str, arguments: tuple, owner: Any) -> str:
    args_s = ", ".join(repr(a) for a in arguments)
    return f"Failed to invoke method {name} with arguments [{args_s}] from object {owner!r}"


class ReflectionExecutor(MethodExecutor):
    """Invokes a named method on a bound object."""
    def __init__(self, obj: Any, method_name: str):
        self.obj = obj
        self.method_name = method_name

    def execute(self, context, target, *arguments):
        method = getattr(self.obj, self.method_name)
        try:
            return method(*arguments)
        except Exception as e:
            raise AccessError(_describe_failure(self.method_name, arguments, self.obj), self.method_name, list(arguments)) from e

    def __repr__(self):
        return f"<ReflectionExecutor {type(self.obj).__name__}.{self.method_name}>"


class CustomFunctionExecutor(MethodExecutor):
    """Applies a list-taking function to the call arguments."""
    def __init__(self, name: str, function: Callable[[List[Any]], Any]):
        self.name = name
        self.function = function

    def execute(self, context, target, *arguments):
        try:
            return self.function(list(arguments))
        except Exception as e:
            raise AccessError(_describe_failure(self.name, arguments, self.function), self.name, list(arguments)) from e

    def __repr__(self):
        return f"<CustomFunctionExecutor {self.name}>"


@dataclass(frozen=True)
class Invoker:
    name: str
    args: Args
    executor: MethodExecutor


# ===================================================================
# Catalogs
# ===================================================================

def _expected_type(hint: Any) -> Any:
    if hint is inspect.Parameter.empty or hint is Any or hint is None:
        return WILDCARD
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        members = tuple(_expected_type(a) for a in typing.get_args(hint))
        if WILDCARD in members:
            return WILDCARD
        return members
    if origin is not None:
        return origin
    if isinstance(hint, type):
        return hint
    return WILDCARD


def signature_of(function: Callable) -> Args:
    """Builds the argument signature of a function from its annotations."""
    try:
        hints = typing.get_type_hints(function)
    except (NameError, TypeError):
        # Unresolvable forward references: fall back to raw annotations.
        hints = {}
    params = [
        p for p in inspect.signature(function).parameters.values()
        if p.name != "self" and p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]
    return Args(tuple(_expected_type(hints.get(p.name, p.annotation)) for p in params))


def _declared_functions(interface: type) -> Iterator[tuple]:
    # Only what the interface itself declares, in declaration order.
    for name, member in vars(interface).items():
        if name.startswith("_"):
            continue
        if isinstance(member, (staticmethod, classmethod)):
            continue
        if inspect.isfunction(member):
            yield name, member


def stream_invokers(interfaces_to_implementations: Mapping[type, Any]) -> Iterator[Invoker]:
    """Turns interface → implementation bindings into one Invoker per declared function."""
    for interface, implementation in interfaces_to_implementations.items():
        for name, function in _declared_functions(interface):
            yield Invoker(name, signature_of(function), ReflectionExecutor(implementation, name))


def of_custom_function(cf: CustomFunction) -> Invoker:
    return Invoker(cf.name, Args(cf.parameter_types), CustomFunctionExecutor(cf.name, cf.function))


# ===================================================================
# Resolvers
# ===================================================================

class Invokers(MethodResolver):
    """Name → signature → executor map, read-only once built."""

    def __init__(self, invokers: Iterable[Invoker]):
        table: Dict[str, Dict[Args, MethodExecutor]] = {}
        for inv in invokers:
            by_args = table.setdefault(inv.name, {})
            if inv.args in by_args:
                raise ValueError(f"Duplicate invoker {inv.name}{inv.args!r}")
            by_args[inv.args] = inv.executor
        self._map = table
        logger.debug("Built invokers for %d names", len(table))

    def __contains__(self, name: str) -> bool:
        return name in self._map

    def names(self) -> List[str]:
        return list(self._map)

    def resolve(self, context, target, name, argument_types):
        argument_classes = [WILDCARD if t is None else t for t in argument_types]
        for args, executor in self._map.get(name, {}).items():
            if args.validate(argument_classes):
                return executor
        return None


class _BoundMethodExecutor(MethodExecutor):
    def __init__(self, name: str):
        self.name = name

    def execute(self, context, target, *arguments):
        method = getattr(target, self.name)
        try:
            return method(*arguments)
        except Exception as e:
            raise AccessError(_describe_failure(self.name, arguments, target), self.name, list(arguments)) from e


class ReflectiveMethodResolver(MethodResolver):
    """Falls back to public callables found on the target itself."""

    def resolve(self, context, target, name, argument_types):
        if target is None or name.startswith("_"):
            return None
        if callable(getattr(target, name, None)):
            return _BoundMethodExecutor(name)
        return None
