"""
Tokenizer (lexer) for the condition language.

Converts condition strings into a stream of tokens for the parser.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from .errors import TokenizerError


class TokenType(Enum):
    """Token types produced by the tokenizer."""

    # Literals
    STRING = "STRING"

    # Function names, checksums and sizes
    WORD = "WORD"

    # Keywords
    AND = "AND"
    OR = "OR"
    NOT = "NOT"

    # Comparison operators
    EQ = "EQ"
    NE = "NE"
    LT = "LT"
    LE = "LE"
    GT = "GT"
    GE = "GE"

    # Delimiters
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    COMMA = "COMMA"

    # Special
    EOF = "EOF"


@dataclass
class Token:
    """A token produced by the tokenizer."""

    type: TokenType
    value: str
    position: int


# Keywords recognized by the tokenizer. Matching is case-sensitive.
KEYWORDS: Dict[str, TokenType] = {
    "and": TokenType.AND,
    "or": TokenType.OR,
    "not": TokenType.NOT,
}

SINGLE_CHAR_TOKENS: Dict[str, TokenType] = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ",": TokenType.COMMA,
}


def _is_word_part(ch: str) -> bool:
    """Checks if a character can appear in a bare word."""
    return ch.isascii() and (ch.isalnum() or ch == "_")


def _is_whitespace(ch: str) -> bool:
    """Checks if a character is whitespace."""
    return ch in (" ", "\t", "\n", "\r")


class Tokenizer:
    """Tokenizer for condition strings."""

    def __init__(self, source: str):
        self._source = source
        self._position = 0
        self._tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """Tokenizes the source condition and returns all tokens."""
        while not self._is_at_end():
            self._scan_token()

        self._tokens.append(Token(TokenType.EOF, "", self._position))
        return self._tokens

    def _is_at_end(self) -> bool:
        return self._position >= len(self._source)

    def _peek(self) -> str:
        if self._is_at_end():
            return "\0"
        return self._source[self._position]

    def _advance(self) -> str:
        ch = self._source[self._position]
        self._position += 1
        return ch

    def _add_token(self, token_type: TokenType, value: str, position: int) -> None:
        self._tokens.append(Token(token_type, value, position))

    def _scan_token(self) -> None:
        ch = self._advance()
        start_position = self._position - 1

        if _is_whitespace(ch):
            return

        if ch in SINGLE_CHAR_TOKENS:
            self._add_token(SINGLE_CHAR_TOKENS[ch], ch, start_position)
            return

        if ch == "<":
            if self._peek() == "=":
                self._advance()
                self._add_token(TokenType.LE, "<=", start_position)
            else:
                self._add_token(TokenType.LT, "<", start_position)
            return

        if ch == ">":
            if self._peek() == "=":
                self._advance()
                self._add_token(TokenType.GE, ">=", start_position)
            else:
                self._add_token(TokenType.GT, ">", start_position)
            return

        if ch == "=":
            if self._peek() == "=":
                self._advance()
                self._add_token(TokenType.EQ, "==", start_position)
                return
            raise TokenizerError(
                "unexpected '=', expected '=='", start_position, self._source
            )

        if ch == "!":
            if self._peek() == "=":
                self._advance()
                self._add_token(TokenType.NE, "!=", start_position)
                return
            raise TokenizerError(
                "unexpected '!', expected '!='", start_position, self._source
            )

        if ch == '"':
            self._scan_string(start_position)
            return

        if _is_word_part(ch):
            self._scan_word(start_position)
            return

        raise TokenizerError(
            f"unexpected character '{ch}'", start_position, self._source
        )

    def _scan_string(self, start_position: int) -> None:
        # Only \" is an escape: regular expressions and Windows paths keep
        # every other backslash as written.
        chars: List[str] = []

        while not self._is_at_end() and self._peek() != '"':
            ch = self._advance()
            if ch == "\\" and self._peek() == '"':
                chars.append(self._advance())
            else:
                chars.append(ch)

        if self._is_at_end():
            raise TokenizerError(
                "unterminated string, expected closing '\"'",
                start_position,
                self._source,
            )

        # Consume closing quote
        self._advance()

        self._add_token(TokenType.STRING, "".join(chars), start_position)

    def _scan_word(self, start_position: int) -> None:
        # Back up to include the first character
        self._position -= 1

        start = self._position
        while _is_word_part(self._peek()):
            self._advance()
        value = self._source[start : self._position]

        keyword_type = KEYWORDS.get(value)
        if keyword_type:
            self._add_token(keyword_type, value, start_position)
        else:
            self._add_token(TokenType.WORD, value, start_position)


def tokenize(source: str) -> List[Token]:
    """
    Tokenizes a condition string into tokens.

    Args:
        source: The condition string to tokenize

    Returns:
        List of tokens

    Raises:
        TokenizerError: If the condition contains invalid tokens
    """
    tokenizer = Tokenizer(source)
    return tokenizer.tokenize()
