"""
Source-anchored errors raised by the lexer, parser and evaluator.

Every error renders the same way:

    ParseError: Unexpected token ')'
    line 3: print(x));
                    ^
"""
from typing import Optional

from tinyfn.tinyfn_location import Location


class TinyfnError(Exception):
    """Base class for all errors that carry a source location."""
    kind = "Error"

    def __init__(self, message: str, location: Optional[Location] = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def format(self) -> str:
        """Renders the message, the offending source line and a caret span."""
        header = f"{self.kind}: {self.message}"
        loc = self.location
        if loc is None:
            return header
        source_line = loc.source.line(loc.line)
        prefix = f"line {loc.line}: "
        lead = source_line[:max(loc.column - 1, 0)]
        # Tabs are kept so the carets line up under the same characters.
        pad = "".join("\t" if c == "\t" else " " for c in lead)
        if loc.end_line == loc.line:
            width = loc.end_column - loc.column
        else:
            width = len(source_line) - len(lead)
        carets = "^" * max(width, 1)
        return f"{header}\n{prefix}{source_line}\n{' ' * len(prefix)}{pad}{carets}"


class LexError(TinyfnError):
    kind = "LexError"


class ParseError(TinyfnError):
    kind = "ParseError"


class EvalError(TinyfnError):
    kind = "EvalError"
