"""
Longest-match tokenizer for tinyfn source text.
"""
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Union

from tinyfn.tinyfn_datatypes import BigInt, SAFE_INTEGER_MAX
from tinyfn.tinyfn_errors import LexError
from tinyfn.tinyfn_location import Location, NEWLINE_RE, Source

OPERATORS = (
    "=>", "==", "!=", "<=", ">=",
    "=", "<", ">", "+", "-", "*", "/",
    "(", ")", "{", "}", "[", "]", ",", ";",
)

ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}
ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)

# Token kinds that are consumed but never emitted.
SKIPPED = frozenset({"newline", "whitespace"})


@dataclass(frozen=True)
class Token:
    kind: str  # 'comment' | 'identifier' | 'literal' | 'operator'
    value: Any
    source: Source
    offset: int
    length: int
    line: int
    column: int
    end_line: int
    end_column: int

    @property
    def text(self) -> str:
        return self.source.text[self.offset:self.offset + self.length]

    @property
    def location(self) -> Location:
        return Location(self.source, self.offset, self.length,
                        self.line, self.column, self.end_line, self.end_column)

    def __repr__(self) -> str:
        return f"<Token {self.kind} {self.text!r} at {self.line}:{self.column}>"


def _unescape(body: str) -> str:
    return ESCAPE_RE.sub(lambda m: ESCAPES.get(m.group(1), m.group(1)), body)


def _integer(text: str) -> int:
    digits = text.replace("_", "")
    value = int(digits)
    if value > SAFE_INTEGER_MAX:
        return BigInt(digits)
    return value


@dataclass(frozen=True)
class Rule:
    name: str
    kind: str
    pattern: "re.Pattern[str]"
    convert: Callable[[str], Any]


def _rule(name: str, kind: str, pattern: str, convert: Callable[[str], Any] = lambda text: text) -> Rule:
    return Rule(name, kind, re.compile(pattern, re.DOTALL), convert)


# Declaration order breaks ties between matches of equal length.
RULES = (
    _rule("boolean", "literal", r"true|false", lambda text: text == "true"),
    _rule("float", "literal", r"[0-9][0-9_]*\.[0-9_]*|\.[0-9][0-9_]*",
          lambda text: float(text.replace("_", ""))),
    _rule("integer", "literal", r"[0-9][0-9_]*", _integer),
    _rule("string", "literal", r"\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'",
          lambda text: _unescape(text[1:-1])),
    _rule("comment", "comment", r"#[^\r\n]*", lambda text: text[1:]),
    _rule("identifier", "identifier", r"(?:[^\W\d]|\$)[\w$]*"),
    _rule("operator", "operator", "|".join(re.escape(op) for op in OPERATORS)),
    _rule("newline", "newline", r"\r\n|\r|\n"),
    _rule("whitespace", "whitespace", r"[^\S\r\n]+"),
)


def _advance(lexeme: str, line: int, column: int):
    """Returns the (line, column) just past lexeme when it starts at (line, column)."""
    parts = NEWLINE_RE.split(lexeme)
    if len(parts) == 1:
        return line, column + len(lexeme)
    return line + len(parts) - 1, len(parts[-1]) + 1


def tokenize(source: Union[Source, str]) -> List[Token]:
    """Splits source into tokens, skipping whitespace and newlines.

    At every position each rule is matched against the remaining input and the
    longest match wins. Raises LexError at the first position no rule matches.
    """
    if isinstance(source, str):
        source = Source(source)
    text = source.text
    tokens: List[Token] = []
    pos, line, column = 0, 1, 1
    while pos < len(text):
        best_rule, best_end = None, pos
        for rule in RULES:
            m = rule.pattern.match(text, pos)
            if m and m.end() > best_end:
                best_rule, best_end = rule, m.end()
        if best_rule is None:
            char = text[pos]
            if char in "\"'":
                message = "Unterminated string literal"
            else:
                message = f"Unexpected character {char!r}"
            raise LexError(message, Location(source, pos, 1, line, column, line, column + 1))

        lexeme = text[pos:best_end]
        end_line, end_column = _advance(lexeme, line, column)
        if best_rule.kind not in SKIPPED:
            tokens.append(Token(
                kind=best_rule.kind,
                value=best_rule.convert(lexeme),
                source=source,
                offset=pos,
                length=len(lexeme),
                line=line,
                column=column,
                end_line=end_line,
                end_column=end_column,
            ))
        pos, line, column = best_end, end_line, end_column
    return tokens
