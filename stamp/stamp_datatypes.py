"""
Defines the core data types for the stamp runtime.

This module provides the error hierarchy, the scope chain used for
variable lookup, argument signatures with their wildcard marker, the
annotation records and the semantic AST produced by the transformer.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Tuple, Callable, TYPE_CHECKING
import collections.abc

if TYPE_CHECKING:
    from stamp.stamp_document import DocxPart, Tag


# =================================================================
# Errors
# =================================================================

class StampError(Exception):
    """Base class for every failure raised by stamp."""


class EvaluationError(StampError):
    """An expression could not be evaluated."""


class ExpressionSyntaxError(EvaluationError):
    def __init__(self, expression: str, message: str, line: Optional[int] = None, col: Optional[int] = None):
        loc = f" (line {line}, col {col})" if line is not None else ""
        super().__init__(f"SyntaxError: {message}{loc} in {expression!r}")
        self.expression = expression
        self.line = line
        self.col = col


class PathNotFound(EvaluationError):
    def __init__(self, key: str):
        super().__init__(f"PathNotFound: {key}")
        self.key = key


class MethodNotFound(EvaluationError):
    """No registered callable matches the requested name and argument types."""
    def __init__(self, name: str, argument_types: List[Any]):
        names = ", ".join(_type_label(t) for t in argument_types)
        super().__init__(f"Method {name}({names}) cannot be found")
        self.name = name
        self.argument_types = list(argument_types)


class AccessError(StampError):
    """A resolved callable raised while being invoked."""
    def __init__(self, message: str, method_name: str, arguments: List[Any]):
        super().__init__(message)
        self.method_name = method_name
        self.arguments = list(arguments)


class ContextKeyError(StampError):
    def __init__(self, key: Any):
        super().__init__(f"Unknown context key {key!r}")
        self.key = key


class ProcessingError(StampError):
    """Opaque failure signal raised when one annotation could not be processed."""


class ConfigError(StampError):
    pass


def _type_label(t: Any) -> str:
    if t is None or t is WILDCARD:
        return "*"
    if isinstance(t, tuple):
        return "|".join(_type_label(x) for x in t)
    return getattr(t, "__name__", repr(t))


# =================================================================
# Argument signatures
# =================================================================

class ExpectedType(Enum):
    """Markers usable in place of a class inside an argument signature."""
    WILDCARD = "*"

    def __repr__(self) -> str:
        return "WILDCARD"


WILDCARD = ExpectedType.WILDCARD


@dataclass(frozen=True)
class Args:
    """An ordered, fixed-length list of expected parameter types.

    A searched type is compatible with an expected type when it is the
    expected type, a subclass of it, or when either side is the wildcard.
    """
    source_types: Tuple[Any, ...]

    def __post_init__(self):
        object.__setattr__(self, "source_types", tuple(self.source_types))

    @classmethod
    def of(cls, *types: Any) -> "Args":
        return cls(types)

    def __len__(self) -> int:
        return len(self.source_types)

    def validate(self, searched_types: List[Any]) -> bool:
        """Returns True when every searched type is compatible with its position."""
        if len(searched_types) != len(self.source_types):
            return False
        return all(
            _compatible(expected, searched)
            for expected, searched in zip(self.source_types, searched_types)
        )

    def __repr__(self) -> str:
        return f"Args({', '.join(_type_label(t) for t in self.source_types)})"


def _compatible(expected: Any, searched: Any) -> bool:
    if searched is WILDCARD or expected is WILDCARD:
        return True
    if searched is expected:
        return True
    if not isinstance(searched, type) or not isinstance(expected, (type, tuple)):
        return False
    return issubclass(searched, expected)


@dataclass(frozen=True)
class CustomFunction:
    """A named function with explicit parameter types.

    `function` receives the runtime arguments as a single list.
    """
    name: str
    parameter_types: Tuple[Any, ...]
    function: Callable[[List[Any]], Any]

    def __post_init__(self):
        object.__setattr__(self, "parameter_types", tuple(self.parameter_types))


# =================================================================
# Scopes
# =================================================================

_MISSING = object()


class Scope:
    """One level of the context stack.

    A scope owns explicit bindings and an optional subject object (the
    data being stamped at this level). Lookup order is bindings, then the
    subject's keys or public data attributes, then the parent scope.
    Methods of a subject are not variables: `title` inside a repeat over
    strings still finds the outer `title`.
    """
    def __init__(self, parent: Optional['Scope'] = None, subject: Any = None):
        self.bindings: Dict[str, Any] = {}
        self.subject = subject
        self.parent = parent

    def __setitem__(self, key: str, value: Any):
        if not isinstance(key, str):
            raise TypeError(f"Scope key must be a str, not {type(key)}")
        self.bindings[key] = value

    def __getitem__(self, key: str) -> Any:
        owner = self.find_owner(key)
        if owner is None:
            raise KeyError(f"'{key}'")
        return owner._local(key)[1]

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and self.find_owner(key) is not None

    def _local(self, key: str) -> Tuple[bool, Any]:
        if key in self.bindings:
            return True, self.bindings[key]
        subject = self.subject
        if isinstance(subject, collections.abc.Mapping):
            if key in subject:
                return True, subject[key]
        elif subject is not None and not key.startswith("_"):
            value = getattr(subject, key, _MISSING)
            if value is not _MISSING and not callable(value):
                return True, value
        return False, None

    def find_owner(self, key: str) -> Optional['Scope']:
        """Finds the Scope in the chain (self → parent) that can answer key."""
        cur = self
        while cur is not None:
            if cur._local(key)[0]:
                return cur
            cur = cur.parent
        return None

    def get(self, key: str, default: Any = None) -> Any:
        owner = self.find_owner(key)
        if owner is None:
            return default
        return owner._local(key)[1]

    @property
    def depth(self) -> int:
        n, cur = 0, self.parent
        while cur is not None:
            n, cur = n + 1, cur.parent
        return n

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Scope bindings=[{keys}] subject={type(self.subject).__name__}{parent_id}>"


# =================================================================
# Annotation records
# =================================================================

@dataclass(frozen=True)
class Comment:
    """The raw annotation: its identifier and expression text."""
    id: str
    expression: str


@dataclass(frozen=True)
class ProcessorContext:
    """Everything known about the annotation currently being processed."""
    part: 'DocxPart'
    tag: 'Tag'
    paragraph: Any
    comment: Comment
    expression: str
    context_stack: Any
    context_key: Optional[str] = None


# =================================================================
# Expression AST
# =================================================================

class Node:
    """Base class for expression AST nodes."""
    loc: Optional[Dict[str, Any]] = None


@dataclass(eq=True)
class Literal(Node):
    value: Any


@dataclass(eq=True)
class ListLiteral(Node):
    items: List[Node] = field(default_factory=list)


@dataclass(eq=True)
class Variable(Node):
    name: str


@dataclass(eq=True)
class Attribute(Node):
    target: Node
    name: str


@dataclass(eq=True)
class IndexAccess(Node):
    target: Node
    index: Node


@dataclass(eq=True)
class FunctionCall(Node):
    name: str
    args: List[Node] = field(default_factory=list)


@dataclass(eq=True)
class MethodCall(Node):
    target: Node
    name: str
    args: List[Node] = field(default_factory=list)


@dataclass(eq=True)
class UnaryOp(Node):
    op: str
    operand: Node


@dataclass(eq=True)
class BinaryOp(Node):
    op: str
    left: Node
    right: Node


@dataclass(eq=True)
class Conditional(Node):
    test: Node
    then: Node
    otherwise: Node
