"""Ex tokenizer — lexes source into a flat token list, one NEWLINE per line."""

from __future__ import annotations


# Token type constants (punctuation and keywords use their own text as type)
TK_INT = "INT"
TK_FLOAT = "FLOAT"
TK_STRING = "STRING"
TK_NAME = "NAME"
TK_NEWLINE = "NEWLINE"

KEYWORDS: set[str] = {
    "else",
    "false",
    "fn",
    "for",
    "if",
    "in",
    "return",
    "true",
    "while",
}

# Two-character operators, tried before single characters
DOUBLE_OPS: list[str] = [
    "==",
    "!=",
    ">=",
    "<=",
]

SINGLE_OPS: set[str] = {
    ".",
    ",",
    "=",
    "+",
    "-",
    "*",
    "/",
    ">",
    "<",
    "(",
    ")",
    "{",
    "}",
    "[",
    "]",
}

INT_LITERAL_MAX = 2**63

INF = float("inf")

TOKEN_NAMES: dict[str, str] = {
    TK_INT: "integer literal",
    TK_FLOAT: "float literal",
    TK_STRING: "string literal",
    TK_NAME: "name",
    TK_NEWLINE: "end of line",
}


class TokenizeError(Exception):
    """Error during tokenization."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


class Token:
    """A token with type, payload, and position.

    Two tokens are equal when type and payload match; position is ignored.
    """

    __slots__ = ("type", "value", "line", "col")

    def __init__(self, type_: str, value: str | int | float, line: int = 0, col: int = 0):
        self.type: str = type_
        self.value: str | int | float = value
        self.line: int = line
        self.col: int = col

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Token):
            return NotImplemented
        return self.type == other.type and self.value == other.value

    def __hash__(self) -> int:
        return hash((self.type, self.value))

    def __repr__(self) -> str:
        return (
            "Token("
            + self.type
            + ", "
            + repr(self.value)
            + ", "
            + str(self.line)
            + ", "
            + str(self.col)
            + ")"
        )


def describe_kind(type_: str) -> str:
    """Human-readable name of a token kind, for error messages."""
    if type_ in TOKEN_NAMES:
        return TOKEN_NAMES[type_]
    return "'" + type_ + "'"


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_name_char(c: str) -> bool:
    return c.isalnum() or c == "_"


def _tokenize_line(text: str, line: int, tokens: list[Token]) -> None:
    pos = 0
    length = len(text)

    while pos < length:
        c = text[pos]
        col = pos + 1

        # Whitespace
        if c == " " or c == "\t" or c == "\r":
            pos += 1
            continue

        # Line comment: #
        if c == "#":
            return

        # Two-character operators
        pair = text[pos : pos + 2]
        if pair in DOUBLE_OPS:
            tokens.append(Token(pair, pair, line, col))
            pos += 2
            continue

        # Single-character operators
        if c in SINGLE_OPS:
            tokens.append(Token(c, c, line, col))
            pos += 1
            continue

        # Number: int, or float with at least one fractional digit.
        # "2.pow" leaves the dot for a method call on the integer.
        if _is_digit(c):
            start = pos
            while pos < length and _is_digit(text[pos]):
                pos += 1
            is_float = False
            if pos + 1 < length and text[pos] == "." and _is_digit(text[pos + 1]):
                is_float = True
                pos += 1
                while pos < length and _is_digit(text[pos]):
                    pos += 1
            raw = text[start:pos]
            if is_float:
                f = float(raw)
                if f == INF:
                    raise TokenizeError("float literal out of range", line, col)
                tokens.append(Token(TK_FLOAT, f, line, col))
            else:
                # 2**63 is allowed here; only its negation is in range.
                digits = raw.lstrip("0")
                if len(digits) > 19 or (digits != "" and int(digits) > INT_LITERAL_MAX):
                    raise TokenizeError("integer literal out of range", line, col)
                tokens.append(Token(TK_INT, int(digits) if digits else 0, line, col))
            continue

        # String literal: "...", contents verbatim
        if c == '"':
            end = text.find('"', pos + 1)
            if end == -1:
                raise TokenizeError("unterminated string literal", line, col)
            tokens.append(Token(TK_STRING, text[pos + 1 : end], line, col))
            pos = end + 1
            continue

        # Name or keyword
        if _is_name_char(c):
            start = pos
            while pos < length and _is_name_char(text[pos]):
                pos += 1
            word = text[start:pos]
            if word in KEYWORDS:
                tokens.append(Token(word, word, line, col))
            else:
                tokens.append(Token(TK_NAME, word, line, col))
            continue

        raise TokenizeError("unexpected character: " + repr(c), line, col)


def tokenize(source: str) -> list[Token]:
    """Tokenize Ex source into a flat list; every line ends with TK_NEWLINE."""
    tokens: list[Token] = []
    lines = source.split("\n")
    for i, text in enumerate(lines):
        _tokenize_line(text, i + 1, tokens)
        tokens.append(Token(TK_NEWLINE, "\n", i + 1, len(text) + 1))
    return tokens
