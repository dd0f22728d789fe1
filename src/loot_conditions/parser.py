"""
Parser for the condition language.

Parses a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent for function arguments and an explicit stack for
parenthesised groups. There is no error recovery; the first defect raises
a ParseError.

Grammar:
    expression := compound ("or" compound)*
    compound   := condition ("and" condition)*
    condition  := "not" condition | function | "(" expression ")"
    function   := NAME "(" arguments ")"
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from .ast import (
    ActiveNode,
    ActivePatternNode,
    AndNode,
    AstNode,
    ChecksumNode,
    ComparisonOperator,
    DescriptionContainsNode,
    FilenameVersionNode,
    FileNode,
    FilePatternNode,
    FileSizeNode,
    IsExecutableNode,
    IsMasterNode,
    ManyActiveNode,
    ManyNode,
    NotNode,
    OrNode,
    PathPattern,
    ProductVersionNode,
    ReadableNode,
    VersionNode,
)
from .errors import ParseError
from .tokenizer import Token, TokenType, tokenize

# Characters that may not appear in a literal path.
INVALID_PATH_CHARS = '":*?<>|'

# A backslash marks a path as a pattern for functions accepting both forms.
INVALID_NON_PATTERN_PATH_CHARS = INVALID_PATH_CHARS + "\\"

# Characters that may not appear in a pattern path.
INVALID_PATTERN_PATH_CHARS = '"<>'

HEX_DIGITS = re.compile(r"[0-9A-Fa-f]+")
DECIMAL_DIGITS = re.compile(r"[0-9]+")

MAX_CRC = 0xFFFFFFFF

OPERATOR_TOKENS: Dict[TokenType, ComparisonOperator] = {
    TokenType.EQ: ComparisonOperator.EQUAL,
    TokenType.NE: ComparisonOperator.NOT_EQUAL,
    TokenType.LT: ComparisonOperator.LESS_THAN,
    TokenType.GT: ComparisonOperator.GREATER_THAN,
    TokenType.LE: ComparisonOperator.LESS_THAN_OR_EQUAL,
    TokenType.GE: ComparisonOperator.GREATER_THAN_OR_EQUAL,
}


def _describe(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "end of input"
    if token.type == TokenType.STRING:
        return f'string "{token.value}"'
    return f"'{token.value}'"


@dataclass
class _Group:
    """A parenthesised group being parsed, or the whole condition."""

    opened_by: Optional[Token]
    position: int = 0
    compound_position: int = 0
    negations: List[int] = field(default_factory=list)
    conditions: List[AstNode] = field(default_factory=list)
    compounds: List[AstNode] = field(default_factory=list)

    def mark(self, position: int) -> None:
        """Records where the next compound starts, if it has not started yet."""
        if self.negations or self.conditions:
            return
        self.compound_position = position
        if not self.compounds:
            self.position = position

    def add_condition(self, operand: AstNode) -> None:
        while self.negations:
            operand = NotNode(position=self.negations.pop(), operand=operand)
        self.conditions.append(operand)

    def end_compound(self) -> None:
        if len(self.conditions) == 1:
            self.compounds.append(self.conditions[0])
        else:
            self.compounds.append(
                AndNode(position=self.compound_position, children=tuple(self.conditions))
            )
        self.conditions = []

    def finish(self) -> AstNode:
        self.end_compound()
        if len(self.compounds) == 1:
            return self.compounds[0]
        return OrNode(position=self.position, children=tuple(self.compounds))


class Parser:
    """Parser for condition strings."""

    def __init__(self, tokens: List[Token], source: str):
        self._tokens = tokens
        self._source = source
        self._current = 0
        self._functions: Dict[str, Callable[[int], AstNode]] = {
            "file": self._parse_file,
            "file_size": self._parse_file_size,
            "readable": self._parse_readable,
            "is_executable": self._parse_is_executable,
            "active": self._parse_active,
            "is_master": self._parse_is_master,
            "many": self._parse_many,
            "many_active": self._parse_many_active,
            "checksum": self._parse_checksum,
            "version": self._parse_version,
            "product_version": self._parse_product_version,
            "filename_version": self._parse_filename_version,
            "description_contains": self._parse_description_contains,
        }

    def parse(self) -> AstNode:
        """Parses the token stream into an AST."""
        if self._is_at_end():
            raise ParseError(
                "expected a condition, found end of input", 0, self._source
            )

        ast = self._parse_expression()

        if not self._is_at_end():
            token = self._peek()
            raise ParseError(
                f"unexpected {_describe(token)}, expected 'and', 'or' or end of input",
                token.position,
                self._source,
            )

        return ast

    # ============================================================
    # Token Helpers
    # ============================================================

    def _is_at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self) -> Token:
        return self._tokens[self._current]

    def _previous(self) -> Token:
        return self._tokens[self._current - 1]

    def _advance(self) -> Token:
        if not self._is_at_end():
            self._current += 1
        return self._previous()

    def _check(self, token_type: TokenType) -> bool:
        if self._is_at_end():
            return False
        return self._peek().type == token_type

    def _match(self, *types: TokenType) -> bool:
        for token_type in types:
            if self._check(token_type):
                self._advance()
                return True
        return False

    def _consume(self, token_type: TokenType, expectation: str) -> Token:
        if self._check(token_type):
            return self._advance()
        token = self._peek()
        raise ParseError(
            f"expected {expectation}, found {_describe(token)}",
            token.position,
            self._source,
        )

    def _error(self, detail: str, position: int) -> ParseError:
        return ParseError(detail, position, self._source)

    # ============================================================
    # Boolean Structure
    # ============================================================

    def _parse_expression(self) -> AstNode:
        """
        Parses a disjunction of compound conditions.

        Groups are tracked on an explicit stack rather than by recursion,
        so nesting depth is limited only by memory.
        """
        groups = [_Group(opened_by=None)]

        while True:
            group = groups[-1]
            token = self._peek()
            group.mark(token.position)

            if self._match(TokenType.NOT):
                group.negations.append(token.position)
                continue

            if self._match(TokenType.LPAREN):
                groups.append(_Group(opened_by=token))
                continue

            if not self._check(TokenType.WORD):
                raise self._error(
                    f"expected a function, 'not' or '(', found {_describe(token)}",
                    token.position,
                )

            operand = self._parse_function()
            while True:
                group.add_condition(operand)
                if self._match(TokenType.AND):
                    break
                if self._match(TokenType.OR):
                    group.end_compound()
                    break

                operand = group.finish()
                if group.opened_by is None:
                    return operand
                self._consume(
                    TokenType.RPAREN,
                    "')' to close the group opened at "
                    f"position {group.opened_by.position}",
                )
                groups.pop()
                group = groups[-1]

    def _parse_function(self) -> AstNode:
        name_token = self._advance()
        parse_arguments = self._functions.get(name_token.value)
        if parse_arguments is None:
            raise self._error(
                f"unknown function '{name_token.value}'", name_token.position
            )

        self._consume(TokenType.LPAREN, f"'(' after '{name_token.value}'")
        node = parse_arguments(name_token.position)
        self._consume(TokenType.RPAREN, f"')' to close '{name_token.value}('")
        return node

    # ============================================================
    # Argument Helpers
    # ============================================================

    def _comma(self) -> None:
        self._consume(TokenType.COMMA, "','")

    def _string(self, expectation: str) -> Token:
        return self._consume(TokenType.STRING, expectation)

    def _path(self) -> str:
        token = self._string("a quoted path")
        return self._validate_path(token, INVALID_PATH_CHARS)

    def _validate_path(self, token: Token, invalid_chars: str) -> str:
        if not token.value:
            raise self._error("path must not be empty", token.position)
        for ch in token.value:
            if ch in invalid_chars:
                raise self._error(
                    f"invalid character '{ch}' in path \"{token.value}\"",
                    token.position,
                )
        return token.value

    def _path_or_pattern(self) -> Union[str, PathPattern]:
        token = self._string("a quoted path")
        if any(ch in INVALID_NON_PATTERN_PATH_CHARS for ch in token.value):
            return self._pattern_from(token)
        return self._validate_path(token, INVALID_NON_PATTERN_PATH_CHARS)

    def _pattern(self) -> PathPattern:
        return self._pattern_from(self._string("a quoted path pattern"))

    def _pattern_from(self, token: Token) -> PathPattern:
        text = token.value
        if not text:
            raise self._error("path pattern must not be empty", token.position)
        for ch in text:
            if ch in INVALID_PATTERN_PATH_CHARS:
                raise self._error(
                    f"invalid character '{ch}' in path pattern \"{text}\"",
                    token.position,
                )
        if text.endswith("/"):
            raise self._error(
                f'"{text}" ends in a directory separator', token.position
            )

        parent, _, source = text.rpartition("/")
        return PathPattern(
            parent=parent or ".",
            source=source,
            regex=self._compile(source, token.position),
        )

    def _name_pattern(self) -> PathPattern:
        token = self._string("a quoted plugin name pattern")
        for ch in token.value:
            if ch in INVALID_PATTERN_PATH_CHARS:
                raise self._error(
                    f"invalid character '{ch}' in plugin name pattern "
                    f"\"{token.value}\"",
                    token.position,
                )
        if "/" in token.value:
            raise self._error(
                f"plugin name pattern \"{token.value}\" must not contain a directory",
                token.position,
            )
        return PathPattern(
            parent=".",
            source=token.value,
            regex=self._compile(token.value, token.position),
        )

    def _compile(self, source: str, position: int) -> "re.Pattern[str]":
        try:
            return re.compile(source, re.IGNORECASE)
        except re.error as error:
            raise self._error(
                f"invalid regular expression \"{source}\": {error}", position
            ) from error

    def _version_string(self) -> str:
        return self._string("a quoted version").value

    def _operator(self) -> ComparisonOperator:
        token = self._peek()
        operator = OPERATOR_TOKENS.get(token.type)
        if operator is None:
            raise self._error(
                "expected a comparison operator (==, !=, <, >, <=, >=), "
                f"found {_describe(token)}",
                token.position,
            )
        self._advance()
        return operator

    def _crc(self) -> int:
        token = self._consume(TokenType.WORD, "a hexadecimal checksum")
        if not HEX_DIGITS.fullmatch(token.value):
            raise self._error(
                f"invalid hexadecimal checksum '{token.value}'", token.position
            )
        crc = int(token.value, 16)
        if crc > MAX_CRC:
            raise self._error(
                f"checksum '{token.value}' does not fit in 32 bits", token.position
            )
        return crc

    def _size(self) -> int:
        token = self._consume(TokenType.WORD, "a file size in bytes")
        if not DECIMAL_DIGITS.fullmatch(token.value):
            raise self._error(f"invalid file size '{token.value}'", token.position)
        return int(token.value)

    # ============================================================
    # Functions
    # ============================================================

    def _parse_file(self, position: int) -> AstNode:
        target = self._path_or_pattern()
        if isinstance(target, PathPattern):
            return FilePatternNode(position=position, pattern=target)
        return FileNode(position=position, path=target)

    def _parse_file_size(self, position: int) -> AstNode:
        path = self._path()
        self._comma()
        return FileSizeNode(position=position, path=path, size=self._size())

    def _parse_readable(self, position: int) -> AstNode:
        token = self._string("a quoted path")
        path = self._validate_path(token, INVALID_NON_PATTERN_PATH_CHARS)
        return ReadableNode(position=position, path=path)

    def _parse_is_executable(self, position: int) -> AstNode:
        token = self._string("a quoted path")
        path = self._validate_path(token, INVALID_NON_PATTERN_PATH_CHARS)
        return IsExecutableNode(position=position, path=path)

    def _parse_active(self, position: int) -> AstNode:
        token = self._peek()
        if token.type == TokenType.STRING and any(
            ch in INVALID_NON_PATTERN_PATH_CHARS for ch in token.value
        ):
            return ActivePatternNode(position=position, pattern=self._name_pattern())
        token = self._string("a quoted plugin name")
        name = self._validate_path(token, INVALID_NON_PATTERN_PATH_CHARS)
        return ActiveNode(position=position, name=name)

    def _parse_is_master(self, position: int) -> AstNode:
        token = self._string("a quoted plugin path")
        path = self._validate_path(token, INVALID_NON_PATTERN_PATH_CHARS)
        return IsMasterNode(position=position, path=path)

    def _parse_many(self, position: int) -> AstNode:
        return ManyNode(position=position, pattern=self._pattern())

    def _parse_many_active(self, position: int) -> AstNode:
        return ManyActiveNode(position=position, pattern=self._name_pattern())

    def _parse_checksum(self, position: int) -> AstNode:
        path = self._path()
        self._comma()
        return ChecksumNode(position=position, path=path, crc=self._crc())

    def _parse_version(self, position: int) -> AstNode:
        path = self._path()
        self._comma()
        version = self._version_string()
        self._comma()
        return VersionNode(
            position=position, path=path, version=version, operator=self._operator()
        )

    def _parse_product_version(self, position: int) -> AstNode:
        path = self._path()
        self._comma()
        version = self._version_string()
        self._comma()
        return ProductVersionNode(
            position=position, path=path, version=version, operator=self._operator()
        )

    def _parse_filename_version(self, position: int) -> AstNode:
        pattern_token = self._peek()
        pattern = self._pattern()
        if pattern.regex.groups != 1:
            raise self._error(
                f"path pattern \"{pattern}\" must contain exactly one capture "
                "group for the version",
                pattern_token.position,
            )
        self._comma()
        version = self._version_string()
        self._comma()
        return FilenameVersionNode(
            position=position,
            pattern=pattern,
            version=version,
            operator=self._operator(),
        )

    def _parse_description_contains(self, position: int) -> AstNode:
        path = self._path()
        self._comma()
        token = self._string("a quoted regular expression")
        return DescriptionContainsNode(
            position=position,
            path=path,
            regex=self._compile(token.value, token.position),
        )


def decode_condition(source: Union[str, bytes]) -> str:
    """Decodes condition bytes as UTF-8, raising ParseError if they are invalid."""
    if isinstance(source, str):
        return source
    try:
        return source.decode("utf-8")
    except UnicodeDecodeError as error:
        raise ParseError(
            f"condition is not valid UTF-8: {error.reason} at byte {error.start}",
            None,
            source.decode("utf-8", errors="replace"),
        ) from error


def parse(source: Union[str, bytes]) -> AstNode:
    """
    Parses a condition string into an AST.

    Args:
        source: The condition text; bytes must be valid UTF-8

    Returns:
        The parsed AST

    Raises:
        TokenizerError: If tokenization fails
        ParseError: If parsing fails
    """
    source = decode_condition(source)
    tokens = tokenize(source)
    return Parser(tokens, source).parse()
