"""
The tinyfn tree-walking evaluator.
"""
from typing import Any, Dict, List, Optional

from tinyfn.tinyfn_datatypes import (
    Node, Comment, Literal, Identifier, Assignment, Function, Call,
    StatementList, Block, ListNode, Environment, Closure,
)
from tinyfn.tinyfn_errors import TinyfnError, EvalError
from tinyfn.tinyfn_file import read_source
from tinyfn.tinyfn_lexer import tokenize
from tinyfn.tinyfn_parser import parse

INCLUDE = "include"


def type_name(value: Any) -> str:
    match value:
        case None:
            return "none"
        case bool():
            return "boolean"
        case int():
            return "integer"
        case float():
            return "float"
        case str():
            return "string"
        case list():
            return "array"
        case dict():
            return "object"
        case Closure():
            return "function"
    if callable(value):
        return "builtin"
    return type(value).__name__


class Interpreter:
    """Evaluates AST nodes against an explicit environment frame.

    The interpreter holds no bindings of its own; the frame is passed to every
    `evaluate` call. It does own the list of side effects recorded by host
    functions (e.g. `print`) during a run.
    """
    def __init__(self):
        self.side_effects: List[Dict[str, Any]] = []
        # Last node entered by `evaluate`; anchors errors raised outside a call.
        self.current_node: Optional[Node] = None
        # Base directory for includes from sources that have no file path.
        self.source_dir: Optional[str] = None

    def run(self, program: Node, env: Environment) -> Any:
        """Evaluates a whole program, reporting stack exhaustion as an EvalError."""
        self.current_node = None
        try:
            return self.evaluate(program, env)
        except RecursionError as e:
            node = self.current_node or program
            raise EvalError("Maximum recursion depth exceeded", node.location) from e

    def evaluate(self, node: Node, env: Environment) -> Any:
        """Recursive dispatcher for evaluating any AST node."""
        self.current_node = node
        match node:
            case Literal(value=value):
                return value
            case Comment():
                return None
            case Identifier(name=name):
                # Unbound names are not an error; they evaluate to None.
                return env.get(name)
            case Assignment(name=name, value=value_node):
                value = self.evaluate(value_node, env)
                env[name] = value
                return value
            case StatementList(statements=statements) | Block(body=StatementList(statements=statements)):
                result = None
                for statement in statements:
                    result = self.evaluate(statement, env)
                return result
            case ListNode(items=items):
                return [self.evaluate(item, env) for item in items]
            case Call(callee="include"):
                return self._include(node, env)
            case Call(callee=callee, args=arg_nodes):
                fn = env.get(callee)
                if not callable(fn):
                    raise EvalError(f"'{callee}' is not callable ({type_name(fn)})", node.location)
                args = [self.evaluate(arg, env) for arg in arg_nodes]
                return self.call(fn, args, node)
            case Function():
                return Closure(node, env, self)
        raise TypeError(f"Cannot evaluate {type(node).__name__}")

    def call(self, fn: Any, args: List[Any], node: Call) -> Any:
        """Invokes a closure or host callable on behalf of the call node."""
        try:
            return fn(*args)
        except TinyfnError:
            raise
        except RecursionError as e:
            raise EvalError("Maximum recursion depth exceeded", node.location) from e
        except Exception as e:
            raise EvalError(f"'{node.callee}' failed: {type(e).__name__}: {e}", node.location) from e

    def invoke(self, closure: Closure, args: List[Any]) -> Any:
        """Runs a closure body in a working copy of its captured frame.

        The working frame is written back onto the captured frame only when the
        body completes; an error leaves the captured frame untouched.
        """
        fn = closure.function
        with closure.env.transaction() as working:
            for i, param in enumerate(fn.params):
                working[param] = args[i] if i < len(args) else None
            result = self.evaluate(fn.body, working)
        return result

    def _include(self, node: Call, env: Environment) -> Any:
        """Reads, parses and evaluates another file directly in env."""
        args = [self.evaluate(arg, env) for arg in node.args]
        if len(args) != 1 or not isinstance(args[0], str):
            raise EvalError("include expects exactly one path string", node.location)
        path = args[0]
        base_dir = node.location.source.directory or self.source_dir
        failed = f"Failed to include '{path}'"
        try:
            source = read_source(path, base_dir)
        # ValueError covers decode errors and paths open() rejects (embedded NUL).
        except (OSError, ValueError) as e:
            raise EvalError(f"{failed}: {e}", node.location) from e
        except RecursionError as e:
            raise EvalError(f"{failed}: maximum recursion depth exceeded", node.location) from e
        try:
            program = parse(tokenize(source), source)
            return self.evaluate(program, env)
        except TinyfnError as e:
            detail = e.message
            if e.location is not None:
                detail = f"{e.kind} at {e.location.source.name}:{e.location.line}:{e.location.column}: {detail}"
            raise EvalError(f"{failed}: {detail}", node.location) from e
        except RecursionError as e:
            raise EvalError(f"{failed}: maximum recursion depth exceeded", node.location) from e
