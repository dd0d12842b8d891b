"""
Defines the core data types for the tinyfn front end and runtime.

This module provides the AST node variants produced by the parser, the
`Environment` frame used by the evaluator, and the runtime value types that
have no direct Python counterpart (`BigInt`, `Closure`).
"""

from abc import ABC
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple, TYPE_CHECKING
import collections.abc

from tinyfn.tinyfn_location import Location

if TYPE_CHECKING:
    from tinyfn.tinyfn_interpreter import Interpreter


# Largest integer a literal may hold before it is promoted to BigInt.
SAFE_INTEGER_MAX = 2 ** 53 - 1


class BigInt(int):
    """An integer literal beyond the safe-integer range.

    Arithmetic on a BigInt yields a plain int; the subclass only marks the
    literal as promoted.
    """
    def __repr__(self) -> str:
        return f"BigInt({int(self)})"


# =================================================================
# AST nodes
# =================================================================

class Node(ABC):
    """Abstract base class for all AST nodes. Every node has a `location`."""
    location: Location


@dataclass(frozen=True)
class Comment(Node):
    text: str
    location: Location


@dataclass(frozen=True)
class Literal(Node):
    value: Any
    location: Location


@dataclass(frozen=True)
class Identifier(Node):
    name: str
    location: Location


@dataclass(frozen=True)
class Assignment(Node):
    name: str
    value: Node
    location: Location


@dataclass(frozen=True)
class Function(Node):
    params: Tuple[str, ...]
    body: Node
    location: Location


@dataclass(frozen=True)
class Call(Node):
    """A call by name. Binary operations are calls whose callee is the operator."""
    callee: str
    args: Tuple[Node, ...]
    location: Location


@dataclass(frozen=True)
class StatementList(Node):
    statements: Tuple[Node, ...]
    location: Location


@dataclass(frozen=True)
class Block(Node):
    body: StatementList
    location: Location


@dataclass(frozen=True)
class ListNode(Node):
    items: Tuple[Node, ...]
    location: Location


def children(node: Node) -> Tuple[Node, ...]:
    """Returns the direct child nodes of node, in source order."""
    match node:
        case Assignment(value=value):
            return (value,)
        case Function(body=body):
            return (body,)
        case Call(args=args):
            return args
        case StatementList(statements=statements):
            return statements
        case Block(body=body):
            return (body,)
        case ListNode(items=items):
            return items
        case Comment() | Literal() | Identifier():
            return ()
    raise TypeError(f"Not an AST node: {node!r}")


def walk(node: Node) -> Iterator[Node]:
    """Yields node and all of its descendants, depth first."""
    yield node
    for child in children(node):
        yield from walk(child)


# =================================================================
# Runtime types
# =================================================================

class Environment(collections.abc.MutableMapping):
    """One scope frame: a flat mapping of names to values.

    Frames are never chained. A closure call works on a shallow copy of the
    closure's captured frame and writes the copy back only when the call
    completes normally (see `transaction`).
    """
    def __init__(self, bindings: Optional[Dict[str, Any]] = None):
        self.bindings: Dict[str, Any] = dict(bindings or {})

    def __getitem__(self, key: str) -> Any:
        return self.bindings[key]

    def __setitem__(self, key: str, value: Any):
        if not isinstance(key, str):
            raise TypeError(f"Environment key must be a str, not {type(key)}")
        self.bindings[key] = value

    def __delitem__(self, key: str):
        del self.bindings[key]

    def __iter__(self):
        return iter(self.bindings)

    def __len__(self) -> int:
        return len(self.bindings)

    def copy(self) -> "Environment":
        """Returns a shallow copy; values themselves are shared."""
        return Environment(self.bindings)

    def commit(self, working: "Environment"):
        """Writes every binding of working back onto this frame."""
        self.bindings.update(working.bindings)

    @contextmanager
    def transaction(self) -> Iterator["Environment"]:
        """Yields a working copy of this frame, committed only on normal exit."""
        working = self.copy()
        yield working
        self.commit(working)

    def __repr__(self) -> str:
        return f"<Environment {sorted(self.bindings)}>"


class Closure:
    """A function value: the `Function` node plus the frame it was defined in.

    Closures are plain Python callables so host functions such as `if` and
    `each` can invoke them directly.
    """
    def __init__(self, function: Function, env: Environment, interpreter: "Interpreter"):
        self.function = function
        self.env = env
        self.interpreter = interpreter

    @property
    def params(self) -> Tuple[str, ...]:
        return self.function.params

    def __call__(self, *args: Any) -> Any:
        return self.interpreter.invoke(self, list(args))

    def __repr__(self) -> str:
        return f"<fn ({', '.join(self.params)})>"
