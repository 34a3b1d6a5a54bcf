"""
Unit tests for the Letterbox lexer.
"""

import pytest

from lexer import LBLexError, Lexer


def token_types(source):
    return [t.type for t in Lexer(source).tokenize()]


class TestLexerBasics:
    """Test basic token classes."""

    def test_empty_source(self):
        """Empty source produces only EOF."""
        tokens = Lexer("").tokenize()
        assert len(tokens) == 1
        assert tokens[0].type == "EOF"

    def test_whitespace_only(self):
        """Whitespace produces no tokens."""
        assert token_types("  \t\n  ") == ["EOF"]

    def test_adjacent_letters_are_separate_tokens(self):
        """A math command splits into one token per letter."""
        assert token_types("MAcab") == ["UPPER", "UPPER", "LOWER", "LOWER", "LOWER", "EOF"]

    def test_letter_values(self):
        """Letter tokens carry the letter itself."""
        tokens = Lexer("Cab").tokenize()
        assert [t.value for t in tokens[:3]] == ["C", "a", "b"]

    def test_integer_literal(self):
        """Digits become an INT token."""
        tokens = Lexer("Sa42").tokenize()
        assert tokens[2].type == "INT"
        assert tokens[2].value == "42"

    def test_negative_integer_literal(self):
        """A leading minus is part of the number."""
        tokens = Lexer("Sa-6").tokenize()
        assert tokens[2].type == "INT"
        assert tokens[2].value == "-6"

    def test_float_literal(self):
        """Digits with a fractional part become a FLOAT token."""
        tokens = Lexer("Sa-6.5").tokenize()
        assert tokens[2].type == "FLOAT"
        assert tokens[2].value == "-6.5"

    def test_number_followed_by_command(self):
        """A number ends where the next letter begins."""
        assert token_types("Sa3Pa") == ["UPPER", "LOWER", "INT", "UPPER", "LOWER", "EOF"]


class TestStrings:
    """Test quoted string literals."""

    def test_single_quoted(self):
        """Quotes delimit the text and are not part of it."""
        tokens = Lexer("P'Hello world'").tokenize()
        assert tokens[1].type == "STRING"
        assert tokens[1].value == "Hello world"

    def test_double_quoted_may_hold_single_quotes(self):
        """The closing delimiter must match the opening one."""
        tokens = Lexer('Sa"it\'s"').tokenize()
        assert tokens[2].value == "it's"

    def test_empty_string(self):
        """Two adjacent delimiters form an empty string."""
        tokens = Lexer("Sr''").tokenize()
        assert tokens[2].type == "STRING"
        assert tokens[2].value == ""

    def test_string_keeps_letters_and_digits(self):
        """Program text inside a string is not tokenized."""
        tokens = Lexer("Sd'Pb MAaac'").tokenize()
        assert tokens[2].value == "Pb MAaac"

    def test_string_may_span_lines(self):
        """Newlines are included literally."""
        tokens = Lexer("P'a\nb'").tokenize()
        assert tokens[1].value == "a\nb"

    def test_unterminated_string(self):
        """A missing closing delimiter is a lex error."""
        with pytest.raises(LBLexError, match="Unterminated string"):
            Lexer("P'abc").tokenize()


class TestComments:
    """Test comment handling."""

    def test_comment_to_end_of_line(self):
        """Everything after '!' on a line is skipped."""
        assert token_types("Pa ! Pb\nPc") == ["UPPER", "LOWER", "UPPER", "LOWER", "EOF"]

    def test_comment_at_end_of_source(self):
        """A trailing comment leaves only EOF behind."""
        assert token_types("! This is a comment") == ["EOF"]

    def test_comment_marker_inside_string(self):
        """'!' inside a string is ordinary text."""
        tokens = Lexer("P'hi!'").tokenize()
        assert tokens[1].value == "hi!"


class TestPositions:
    """Test line and column tracking."""

    def test_first_token_position(self):
        """Columns are 1-based."""
        token = Lexer("Pa").tokenize()[0]
        assert (token.line, token.column) == (1, 1)

    def test_multiline_position(self):
        """Lines advance on newline and columns restart."""
        tokens = Lexer("Sa3\n  Pb").tokenize()
        p = tokens[3]
        assert p.value == "P"
        assert (p.line, p.column) == (2, 3)


class TestErrors:
    """Test lexical errors."""

    def test_unexpected_character(self):
        """Characters outside every class are rejected with a position."""
        with pytest.raises(LBLexError, match=r"Unexpected character '\$' at <string>:1:5"):
            Lexer("Sa3 $").tokenize()

    def test_lone_minus(self):
        """A minus must be followed by a digit."""
        with pytest.raises(LBLexError, match="after '-'"):
            Lexer("Sa-x").tokenize()

    def test_trailing_dot(self):
        """A decimal point must be followed by a digit."""
        with pytest.raises(LBLexError, match="after '.'"):
            Lexer("Sa3.").tokenize()

    def test_filename_in_message(self):
        """The configured filename appears in error messages."""
        with pytest.raises(LBLexError, match="prog.lb:2:1"):
            Lexer("Pa\n#", "prog.lb").tokenize()


class TestLaziness:
    """Test the token generator."""

    def test_tokens_are_produced_lazily(self):
        """Tokens before a bad character are available before the error."""
        stream = Lexer("Pa $").tokens()
        assert next(stream).value == "P"
        assert next(stream).value == "a"
        with pytest.raises(LBLexError):
            next(stream)

    def test_tokens_can_restart(self):
        """Iterating a second time yields the same sequence."""
        lexer = Lexer("Sa3 Pa")
        assert list(lexer.tokens()) == list(lexer.tokens())
