# tinyfn runtime: standard library, host binding and script execution.

import collections.abc
import inspect
import os
from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional

from tinyfn.tinyfn_datatypes import Environment
from tinyfn.tinyfn_errors import TinyfnError
from tinyfn.tinyfn_interpreter import Interpreter
from tinyfn.tinyfn_lexer import tokenize
from tinyfn.tinyfn_location import Source
from tinyfn.tinyfn_parser import parse
from tinyfn.tinyfn_printer import Printer
from tinyfn.tinyfn_serialize import serialize

# ===================================================================
# 1. Host binding
# ===================================================================


def tinyfn_api_method(func):
    """A decorator to explicitly mark methods as callable from tinyfn scripts."""
    func._is_tinyfn_api = True
    return func


class TinyfnHost(ABC):
    """Base class for Python objects that expose methods to tinyfn scripts.

    Only methods decorated with `@tinyfn_api_method` are bound, under their
    Python name, into the runner's root environment.
    """

    def api_methods(self) -> Dict[str, Any]:
        methods = {}
        for name, member in inspect.getmembers(self):
            if not callable(member):
                continue
            # Decorator may mark the bound method or the underlying function
            is_api = getattr(member, "_is_tinyfn_api", False)
            if not is_api:
                func = getattr(member, "__func__", None)
                if func is not None:
                    is_api = getattr(func, "_is_tinyfn_api", False)
            if is_api:
                methods[name] = member
        return methods


# ===================================================================
# 2. The Standard Library
# ===================================================================

OPERATOR_ALIASES = {
    "+": "add", "-": "sub", "*": "mul", "/": "div",
    "<": "lt", "<=": "lte", ">": "gt", ">=": "gte",
    "==": "eq", "!=": "neq",
}


class StdLib:
    """Contains Python implementations for the default tinyfn globals."""

    def __init__(self, interpreter: Interpreter, printer: Optional[Printer] = None):
        self.interpreter = interpreter
        self.printer = printer or Printer()

    def bindings(self) -> Dict[str, Any]:
        """Maps tinyfn names to the bound `_name` methods, plus operator aliases."""
        out = {}
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                out[name[1:]] = member
        for op, name in OPERATOR_ALIASES.items():
            out[op] = out[name]
        return out

    # --- Output ---
    def _print(self, *values):
        """Records a stdout side effect and returns none."""
        message = " ".join(self.printer.display(v) for v in values)
        self.interpreter.side_effects.append({"topics": ["stdout"], "message": message})
        return None

    # --- Math and Logic ---
    def _add(self, a, b): return a + b
    def _sub(self, a, b): return a - b
    def _mul(self, a, b): return a * b
    def _div(self, a, b): return a / b
    def _eq(self, a, b):
        # true and 1 are different values in tinyfn.
        if isinstance(a, bool) != isinstance(b, bool):
            return False
        return a == b
    def _neq(self, a, b): return not self._eq(a, b)
    def _gt(self, a, b): return a > b
    def _gte(self, a, b): return a >= b
    def _lt(self, a, b): return a < b
    def _lte(self, a, b): return a <= b

    # --- Control flow ---
    def _if(self, cond, then_fn, else_fn=None):
        """Calls exactly one of the zero-argument branches."""
        if cond:
            return then_fn()
        if else_fn is not None:
            return else_fn()
        return None

    def _each(self, items, fn):
        for index, item in enumerate(list(items)):
            fn(item, index)
        return None

    # --- Arrays and objects ---
    def _push(self, items, value):
        items.append(value)
        return items

    def _pop(self, items):
        return items.pop() if items else None

    def _get(self, container, key):
        if isinstance(container, collections.abc.Mapping):
            return container.get(key)
        if isinstance(container, (list, str)) and isinstance(key, int) and not isinstance(key, bool):
            if -len(container) <= key < len(container):
                return container[key]
            return None
        raise TypeError(f"cannot index {type(container).__name__} with {type(key).__name__}")

    def _set(self, container, key, value):
        container[key] = value
        return value

    def _range(self, *args): return list(range(*args))
    def _len(self, collection): return len(collection)
    def _object(self): return {}
    def _keys(self, obj): return list(obj.keys())


# ===================================================================
# 3. Script Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error: Optional[TinyfnError] = None
    error_message: Optional[str] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats the error as message, source line and caret span."""
        if self.status != 'error':
            return ""
        if self.error is not None:
            return self.error.format()
        return str(self.error_message or "Unknown error")

    @property
    def output(self) -> List[str]:
        """Messages printed to stdout during the run."""
        return [e["message"] for e in self.side_effects if e.get("topics") == ["stdout"]]


class ScriptRunner:
    """Lexes, parses and evaluates tinyfn code against a persistent root frame.

    Bindings are layered: the standard library first (unless `load_stdlib`
    is False), then `@tinyfn_api_method` methods of `host_object`, then the
    explicit `bindings` mapping. Later layers shadow earlier ones.
    """

    def __init__(self, bindings: Optional[Mapping[str, Any]] = None,
                 host_object: Optional[TinyfnHost] = None,
                 load_stdlib: bool = True, debug: bool = False):
        self.host_object = host_object
        self.debug = debug
        self.source_dir: Optional[str] = None  # base directory for include, if known
        self.interpreter = Interpreter()
        self.printer = Printer()
        self.root_scope = Environment()

        if load_stdlib:
            stdlib = StdLib(self.interpreter, self.printer)
            self.root_scope.bindings.update(stdlib.bindings())
        if host_object is not None:
            self.root_scope.bindings.update(host_object.api_methods())
        if bindings:
            for name, value in bindings.items():
                self.root_scope[name] = value

    def _debug_dump(self, tokens, program):
        effects = self.interpreter.side_effects
        effects.append({"topics": ["debug"], "message": "tokens:\n" + serialize(tokens)})
        effects.append({"topics": ["debug"], "message": "ast:\n" + serialize(program)})

    def handle_script(self, source_code: str, name: str = "<script>",
                      path: Optional[str] = None) -> ExecutionResult:
        """The main entry point to execute a script.

        tinyfn errors are returned as an error result; any other exception is
        an internal error and propagates.
        """
        self.interpreter.side_effects.clear()
        self.interpreter.source_dir = self.source_dir or os.getcwd()
        source = Source(source_code, name=name, path=path)
        try:
            tokens = tokenize(source)
            program = parse(tokens, source)
            if self.debug:
                self._debug_dump(tokens, program)
            value = self.interpreter.run(program, self.root_scope)
        except TinyfnError as e:
            msg = e.format()
            self.interpreter.side_effects.append({'topics': ['stderr'], 'message': msg})
            return ExecutionResult(
                status='error',
                error=e,
                error_message=msg,
                side_effects=list(self.interpreter.side_effects),
            )
        return ExecutionResult(
            status='success',
            value=value,
            side_effects=list(self.interpreter.side_effects),
        )

    def handle_file(self, path: str) -> ExecutionResult:
        """Reads and runs a script file; relative includes resolve next to it."""
        with open(path, "r", encoding="utf-8") as f:
            source_code = f.read()
        return self.handle_script(source_code, name=path, path=path)


def run(source_code: str, bindings: Optional[Mapping[str, Any]] = None) -> Any:
    """Runs source_code with the standard library and returns its value.

    Unlike ScriptRunner.handle_script, errors are raised.
    """
    runner = ScriptRunner(bindings=bindings)
    result = runner.handle_script(source_code)
    if result.error is not None:
        raise result.error
    return result.value
