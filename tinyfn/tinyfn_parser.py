"""
Backtracking recursive-descent parser producing located tinyfn AST nodes.

Every rule returns either a node (or token) on success, or a `ParseFailure`
value on a local failure. Failures are ordinary return values: callers that
want to try another alternative restore the cursor and move on, while any
exception raised mid-parse is an internal error and propagates unchanged.
The one exception is running out of Python stack on deeply nested input,
which is reported as a ParseError at the token being parsed.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from tinyfn.tinyfn_datatypes import (
    Node, Comment, Literal, Identifier, Assignment, Function, Call,
    StatementList, Block, ListNode,
)
from tinyfn.tinyfn_errors import ParseError
from tinyfn.tinyfn_lexer import Token
from tinyfn.tinyfn_location import Location, Source, merge_all

BINARY_OPERATORS = frozenset({"+", "-", "*", "/", "<", "<=", ">", ">=", "==", "!="})


@dataclass(frozen=True)
class ParseFailure:
    """A local, recoverable failure to match a rule at token `index`."""
    message: str
    location: Location
    index: int

    def to_error(self) -> ParseError:
        return ParseError(self.message, self.location)


class Parser:
    """Parses one token sequence. Not reusable across inputs."""

    def __init__(self, tokens: Sequence[Token], source: Optional[Source] = None):
        self.tokens: List[Token] = list(tokens)
        if source is None:
            source = self.tokens[0].source if self.tokens else Source("")
        self.source = source
        self.pos = 0
        # Deepest failure seen so far; used to explain a top-level failure.
        self.furthest: Optional[ParseFailure] = None
        # Packrat cache for `term`, keyed by start position.
        self._term_memo: Dict[int, Tuple[object, int]] = {}

    # --- Entry points ---

    def parse(self) -> StatementList:
        """Parses the whole input as a statement list."""
        program = self._guarded(self.statement_list)
        if self.pos < len(self.tokens):
            raise self._leftover_error()
        return program

    def parse_expression(self) -> Node:
        """Parses the whole input as a single expression."""
        result = self._guarded(self.expression)
        if isinstance(result, ParseFailure):
            raise (self.furthest or result).to_error()
        if self.pos < len(self.tokens):
            raise self._leftover_error()
        return result

    def _guarded(self, rule: Callable[[], object]):
        try:
            return rule()
        except RecursionError as e:
            # The cursor is left where the stack ran out.
            raise ParseError("Input nested too deeply", self.cursor_location()) from e

    def _leftover_error(self) -> ParseError:
        token = self.tokens[self.pos]
        if self.furthest is not None and self.furthest.index > self.pos:
            return self.furthest.to_error()
        return ParseError(f"Unexpected token {token.text!r}", token.location)

    # --- Cursor helpers ---

    def peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def here(self) -> Location:
        """A zero-length location at the cursor."""
        token = self.peek()
        if token is None:
            return Location.at_end(self.source)
        return Location(self.source, token.offset, 0, token.line, token.column,
                        token.line, token.column)

    def cursor_location(self) -> Location:
        """The span of the token at the cursor, or the end of input."""
        token = self.peek()
        return token.location if token is not None else Location.at_end(self.source)

    def fail(self, message: str) -> ParseFailure:
        failure = ParseFailure(message, self.cursor_location(), self.pos)
        if self.furthest is None or failure.index >= self.furthest.index:
            self.furthest = failure
        return failure

    def attempt(self, rule: Callable[[], object]):
        """Runs rule, restoring the cursor if it fails."""
        mark = self.pos
        result = rule()
        if isinstance(result, ParseFailure):
            self.pos = mark
        return result

    def _describe(self, token: Optional[Token]) -> str:
        return "end of input" if token is None else repr(token.text)

    def expect(self, kind: str) -> Union[Token, ParseFailure]:
        token = self.peek()
        if token is None or token.kind != kind:
            return self.fail(f"Expected {kind}, found {self._describe(token)}")
        self.pos += 1
        return token

    def expect_operator(self, value: str) -> Union[Token, ParseFailure]:
        token = self.peek()
        if token is None or token.kind != "operator" or token.value != value:
            return self.fail(f"Expected {value!r}, found {self._describe(token)}")
        self.pos += 1
        return token

    def accept_operator(self, value: str) -> Optional[Token]:
        token = self.peek()
        if token is not None and token.kind == "operator" and token.value == value:
            self.pos += 1
            return token
        return None

    def at_operator(self, value: str) -> bool:
        token = self.peek()
        return token is not None and token.kind == "operator" and token.value == value

    def separated(self, item: Callable[[], object], closer: str):
        """Parses `item ("," item)* ","?` up to (not including) closer."""
        items = []
        while not self.at_operator(closer):
            result = self.attempt(item)
            if isinstance(result, ParseFailure):
                return result
            items.append(result)
            if self.accept_operator(",") is None:
                break
        return items

    # --- Statements ---

    def statement_list(self) -> StatementList:
        """`(expression ";")*`; stops before the first statement it cannot finish."""
        start = self.here()
        statements: List[Node] = []
        spans: List[Location] = []
        while self.pos < len(self.tokens):
            mark = self.pos
            statement = self.expression()
            if isinstance(statement, ParseFailure):
                self.pos = mark
                break
            if isinstance(statement, Comment):
                separator = self.accept_operator(";")
            else:
                separator = self.expect_operator(";")
                if isinstance(separator, ParseFailure):
                    self.pos = mark
                    break
            statements.append(statement)
            spans.append(statement.location)
            if separator is not None:
                spans.append(separator.location)
        location = merge_all(*spans) if spans else start
        return StatementList(tuple(statements), location)

    # --- Expressions, in priority order ---

    def expression(self) -> Union[Node, ParseFailure]:
        for rule in (self.comment, self.assignment, self.function,
                     self.binary_operation, self.term):
            result = self.attempt(rule)
            if not isinstance(result, ParseFailure):
                return result
        return self.fail(f"Expected expression, found {self._describe(self.peek())}")

    def comment(self) -> Union[Comment, ParseFailure]:
        token = self.expect("comment")
        if isinstance(token, ParseFailure):
            return token
        return Comment(token.value, token.location)

    def assignment(self) -> Union[Assignment, ParseFailure]:
        name = self.expect("identifier")
        if isinstance(name, ParseFailure):
            return name
        equals = self.expect_operator("=")
        if isinstance(equals, ParseFailure):
            return equals
        value = self.expression()
        if isinstance(value, ParseFailure):
            return value
        return Assignment(name.value, value, name.location.merge(value.location))

    def function(self) -> Union[Function, ParseFailure]:
        opener = self.expect_operator("(")
        if isinstance(opener, ParseFailure):
            return opener
        params = self.separated(lambda: self.expect("identifier"), ")")
        if isinstance(params, ParseFailure):
            return params
        for expected in (")", "=>"):
            token = self.expect_operator(expected)
            if isinstance(token, ParseFailure):
                return token
        body = self.expression()
        if isinstance(body, ParseFailure):
            return body
        names = tuple(param.value for param in params)
        return Function(names, body, opener.location.merge(body.location))

    def binary_operation(self) -> Union[Call, ParseFailure]:
        left = self.term()
        if isinstance(left, ParseFailure):
            return left
        operator = self.peek()
        if operator is None or operator.kind != "operator" or operator.value not in BINARY_OPERATORS:
            return self.fail(f"Expected operator, found {self._describe(operator)}")
        self.pos += 1
        # Right side is a full expression: chains group to the right.
        right = self.expression()
        if isinstance(right, ParseFailure):
            return right
        return Call(operator.value, (left, right), left.location.merge(right.location))

    # --- Terms ---

    def term(self) -> Union[Node, ParseFailure]:
        start = self.pos
        cached = self._term_memo.get(start)
        if cached is not None:
            result, end = cached
            self.pos = end
            return result
        result = self._term()
        self._term_memo[start] = (result, self.pos)
        return result

    def _term(self) -> Union[Node, ParseFailure]:
        for rule in (self.call, self.block, self.list_literal, self.literal, self.identifier):
            result = self.attempt(rule)
            if not isinstance(result, ParseFailure):
                return result
        return self.fail(f"Expected term, found {self._describe(self.peek())}")

    def call(self) -> Union[Call, ParseFailure]:
        name = self.expect("identifier")
        if isinstance(name, ParseFailure):
            return name
        opener = self.expect_operator("(")
        if isinstance(opener, ParseFailure):
            return opener
        args = self.separated(self.expression, ")")
        if isinstance(args, ParseFailure):
            return args
        closer = self.expect_operator(")")
        if isinstance(closer, ParseFailure):
            return closer
        return Call(name.value, tuple(args), name.location.merge(closer.location))

    def block(self) -> Union[Block, ParseFailure]:
        opener = self.expect_operator("{")
        if isinstance(opener, ParseFailure):
            return opener
        body = self.statement_list()
        closer = self.expect_operator("}")
        if isinstance(closer, ParseFailure):
            return closer
        return Block(body, opener.location.merge(closer.location))

    def list_literal(self) -> Union[ListNode, ParseFailure]:
        opener = self.expect_operator("[")
        if isinstance(opener, ParseFailure):
            return opener
        items = self.separated(self.expression, "]")
        if isinstance(items, ParseFailure):
            return items
        closer = self.expect_operator("]")
        if isinstance(closer, ParseFailure):
            return closer
        return ListNode(tuple(items), opener.location.merge(closer.location))

    def literal(self) -> Union[Literal, ParseFailure]:
        token = self.expect("literal")
        if isinstance(token, ParseFailure):
            return token
        return Literal(token.value, token.location)

    def identifier(self) -> Union[Identifier, ParseFailure]:
        token = self.expect("identifier")
        if isinstance(token, ParseFailure):
            return token
        return Identifier(token.value, token.location)


def parse(tokens: Sequence[Token], source: Optional[Source] = None) -> StatementList:
    """Parses tokens as a whole program. Raises ParseError."""
    return Parser(tokens, source).parse()


def parse_expression(tokens: Sequence[Token], source: Optional[Source] = None) -> Node:
    """Parses tokens as exactly one expression. Raises ParseError."""
    return Parser(tokens, source).parse_expression()
