"""
Tests for the condition tokenizer.
"""

import pytest

from loot_conditions import TokenizerError, TokenType, tokenize


def token_types(source: str):
    return [t.type for t in tokenize(source)]


class TestStrings:
    """Tests for quoted strings."""

    def test_tokenizes_string(self):
        tokens = tokenize('"Blank.esm"')
        assert tokens[0].type == TokenType.STRING
        assert tokens[0].value == "Blank.esm"
        assert tokens[0].position == 0

    def test_keeps_backslashes_literally(self):
        tokens = tokenize(r'"..\TESV.exe"')
        assert tokens[0].value == r"..\TESV.exe"

    def test_keeps_regex_escapes_literally(self):
        tokens = tokenize(r'"Deeper Thoughts \(Curie\)\.esp"')
        assert tokens[0].value == r"Deeper Thoughts \(Curie\)\.esp"

    def test_unescapes_embedded_quotes(self):
        tokens = tokenize(r'"say \"hi\""')
        assert tokens[0].value == 'say "hi"'

    def test_tokenizes_empty_string(self):
        tokens = tokenize('""')
        assert tokens[0].type == TokenType.STRING
        assert tokens[0].value == ""

    def test_throws_on_unterminated_string(self):
        with pytest.raises(TokenizerError) as exc_info:
            tokenize('file("Blank.')
        assert "unterminated string" in str(exc_info.value)
        assert exc_info.value.position == 5


class TestWords:
    """Tests for function names, checksums and sizes."""

    def test_tokenizes_function_names(self):
        tokens = tokenize("many_active")
        assert tokens[0].type == TokenType.WORD
        assert tokens[0].value == "many_active"

    def test_tokenizes_hex_checksum(self):
        tokens = tokenize("3E85A943")
        assert tokens[0].type == TokenType.WORD
        assert tokens[0].value == "3E85A943"

    def test_tokenizes_keywords(self):
        assert token_types("and or not") == [
            TokenType.AND,
            TokenType.OR,
            TokenType.NOT,
            TokenType.EOF,
        ]

    def test_keywords_are_case_sensitive(self):
        assert token_types("AND Or") == [TokenType.WORD, TokenType.WORD, TokenType.EOF]


class TestOperators:
    """Tests for comparison operators and delimiters."""

    def test_tokenizes_comparison_operators(self):
        assert token_types("== != < <= > >=") == [
            TokenType.EQ,
            TokenType.NE,
            TokenType.LT,
            TokenType.LE,
            TokenType.GT,
            TokenType.GE,
            TokenType.EOF,
        ]

    def test_tokenizes_delimiters(self):
        assert token_types("( , )") == [
            TokenType.LPAREN,
            TokenType.COMMA,
            TokenType.RPAREN,
            TokenType.EOF,
        ]

    def test_throws_on_single_equals(self):
        with pytest.raises(TokenizerError, match="expected '=='"):
            tokenize("=")

    def test_throws_on_bare_bang(self):
        with pytest.raises(TokenizerError, match="expected '!='"):
            tokenize("!")

    def test_throws_on_unexpected_character(self):
        with pytest.raises(TokenizerError, match="unexpected character '#'") as exc_info:
            tokenize("file #")
        assert exc_info.value.position == 5


class TestWhitespace:
    def test_skips_whitespace(self):
        tokens = tokenize('  file ( "a.esp" )\n')
        assert [t.type for t in tokens] == [
            TokenType.WORD,
            TokenType.LPAREN,
            TokenType.STRING,
            TokenType.RPAREN,
            TokenType.EOF,
        ]
        assert tokens[0].position == 2

    def test_empty_input_yields_only_eof(self):
        assert token_types("") == [TokenType.EOF]
