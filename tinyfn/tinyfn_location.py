"""
Source text handles and the span model shared by tokens, AST nodes and errors.
"""
import os
import re
from dataclasses import dataclass
from typing import List, Optional

NEWLINE_RE = re.compile(r"\r\n|\r|\n")


class Source:
    """A piece of tinyfn source text plus where it came from."""

    def __init__(self, text: str, name: str = "<script>", path: Optional[str] = None):
        self.text = text
        self.name = name
        self.path = path
        self._lines: Optional[List[str]] = None

    @property
    def lines(self) -> List[str]:
        if self._lines is None:
            self._lines = NEWLINE_RE.split(self.text)
        return self._lines

    @property
    def directory(self) -> Optional[str]:
        """Directory of the backing file, used to resolve relative includes."""
        if self.path is None:
            return None
        return os.path.dirname(os.path.abspath(self.path))

    def line(self, number: int) -> str:
        """Returns the 1-based line `number`, or '' when out of range."""
        if number < 1 or number > len(self.lines):
            return ""
        return self.lines[number - 1]

    def __repr__(self) -> str:
        return f"<Source {self.name}>"


@dataclass(frozen=True)
class Location:
    """A span of source text.

    `line`/`column` are 1-based and point at the first character;
    `end_line`/`end_column` point just past the last one.
    """
    source: Source
    offset: int
    length: int
    line: int
    column: int
    end_line: int
    end_column: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def text(self) -> str:
        return self.source.text[self.offset:self.end]

    def merge(self, other: "Location") -> "Location":
        """Returns the smallest location covering both self and other."""
        if other.source is not self.source:
            raise ValueError("cannot merge locations from different sources")
        first = self if self.offset <= other.offset else other
        last = self if self.end >= other.end else other
        return Location(
            source=self.source,
            offset=first.offset,
            length=last.end - first.offset,
            line=first.line,
            column=first.column,
            end_line=last.end_line,
            end_column=last.end_column,
        )

    @classmethod
    def at_end(cls, source: Source) -> "Location":
        """A zero-length location just past the last character of source."""
        lines = source.lines
        line = len(lines)
        column = len(lines[-1]) + 1
        return cls(source, len(source.text), 0, line, column, line, column)

    def __repr__(self) -> str:
        return f"<Location {self.source.name}:{self.line}:{self.column}+{self.length}>"


def merge_all(first: Location, *rest: Location) -> Location:
    loc = first
    for other in rest:
        loc = loc.merge(other)
    return loc
