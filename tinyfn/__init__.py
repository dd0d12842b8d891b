"""tinyfn: an embeddable scripting language front end."""

from tinyfn.tinyfn_datatypes import BigInt, Closure, Environment
from tinyfn.tinyfn_errors import TinyfnError, LexError, ParseError, EvalError
from tinyfn.tinyfn_interpreter import Interpreter
from tinyfn.tinyfn_lexer import Token, tokenize
from tinyfn.tinyfn_location import Location, Source
from tinyfn.tinyfn_parser import parse, parse_expression
from tinyfn.tinyfn_runtime import (
    ExecutionResult, ScriptRunner, StdLib, TinyfnHost, run, tinyfn_api_method,
)

__all__ = [
    "BigInt", "Closure", "Environment",
    "TinyfnError", "LexError", "ParseError", "EvalError",
    "Interpreter", "Token", "tokenize", "Location", "Source",
    "parse", "parse_expression",
    "ExecutionResult", "ScriptRunner", "StdLib", "TinyfnHost", "run", "tinyfn_api_method",
]
