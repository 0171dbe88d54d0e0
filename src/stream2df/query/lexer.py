"""Tokenizer for the SQL subset understood by the query engine."""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Union

from stream2df.errors import SqlSyntaxError

KEYWORDS = frozenset(
    {
        "SELECT",
        "DISTINCT",
        "FROM",
        "WHERE",
        "AND",
        "OR",
        "NOT",
        "IN",
        "IS",
        "NULL",
        "TRUE",
        "FALSE",
        "LIKE",
        "ILIKE",
        "BETWEEN",
        "AS",
        "ORDER",
        "BY",
        "ASC",
        "DESC",
        "NULLS",
        "FIRST",
        "LAST",
        "LIMIT",
        "OFFSET",
    }
)

# Longest operators first so that `<=` wins over `<`.
OPERATORS = ("<>", "!=", "<=", ">=", "=", "<", ">", "(", ")", ",", "*", ".", ";", "-")


class TokenKind(Enum):
    KEYWORD = auto()
    IDENTIFIER = auto()
    STRING = auto()
    NUMBER = auto()
    OPERATOR = auto()
    EOF = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: Union[str, int, float]
    position: int

    def is_keyword(self, *names: str) -> bool:
        return self.kind is TokenKind.KEYWORD and self.value in names

    def is_operator(self, *ops: str) -> bool:
        return self.kind is TokenKind.OPERATOR and self.value in ops

    def __str__(self) -> str:
        if self.kind is TokenKind.EOF:
            return "end of input"
        if self.kind is TokenKind.STRING:
            return f"'{self.value}'"
        return str(self.value)


def _read_quoted(text: str, start: int, quote: str) -> tuple[str, int]:
    """Read a quoted literal starting at the opening quote. A doubled quote
    stands for the quote character itself."""
    chars = []
    i = start + 1
    while i < len(text):
        c = text[i]
        if c == quote:
            if i + 1 < len(text) and text[i + 1] == quote:
                chars.append(quote)
                i += 2
                continue
            return "".join(chars), i + 1
        chars.append(c)
        i += 1
    what = "string literal" if quote == "'" else "quoted identifier"
    raise SqlSyntaxError(f"unterminated {what}", position=start)


def _read_number(text: str, start: int) -> tuple[Union[int, float], int]:
    i = start
    while i < len(text) and text[i].isdigit():
        i += 1
    is_float = False
    if i < len(text) and text[i] == "." and i + 1 < len(text) and text[i + 1].isdigit():
        is_float = True
        i += 1
        while i < len(text) and text[i].isdigit():
            i += 1
    if i < len(text) and text[i] in "eE":
        j = i + 1
        if j < len(text) and text[j] in "+-":
            j += 1
        if j < len(text) and text[j].isdigit():
            is_float = True
            i = j
            while i < len(text) and text[i].isdigit():
                i += 1
    literal = text[start:i]
    if i < len(text) and (text[i].isalpha() or text[i] == "_"):
        raise SqlSyntaxError(f"malformed number '{literal}{text[i]}'", position=start)
    return (float(literal) if is_float else int(literal)), i


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c.isspace():
            i += 1
        elif text.startswith("--", i):
            end = text.find("\n", i)
            i = n if end < 0 else end + 1
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end < 0:
                raise SqlSyntaxError("unterminated block comment", position=i)
            i = end + 2
        elif c == "'":
            value, end = _read_quoted(text, i, "'")
            tokens.append(Token(TokenKind.STRING, value, i))
            i = end
        elif c == '"':
            value, end = _read_quoted(text, i, '"')
            if not value:
                raise SqlSyntaxError("empty quoted identifier", position=i)
            tokens.append(Token(TokenKind.IDENTIFIER, value, i))
            i = end
        elif c.isdigit() or (c == "." and i + 1 < n and text[i + 1].isdigit()):
            if c == ".":
                value, end = _read_number("0" + text[i:], 0)
                end = end - 1 + i
            else:
                value, end = _read_number(text, i)
            tokens.append(Token(TokenKind.NUMBER, value, i))
            i = end
        elif c.isalpha() or c == "_":
            start = i
            while i < n and (text[i].isalnum() or text[i] in "_$"):
                i += 1
            word = text[start:i]
            if word.upper() in KEYWORDS:
                tokens.append(Token(TokenKind.KEYWORD, word.upper(), start))
            else:
                # Unquoted identifiers are case-insensitive.
                tokens.append(Token(TokenKind.IDENTIFIER, word.lower(), start))
        else:
            for op in OPERATORS:
                if text.startswith(op, i):
                    tokens.append(Token(TokenKind.OPERATOR, op, i))
                    i += len(op)
                    break
            else:
                raise SqlSyntaxError(f"unexpected character {c!r}", position=i)
    tokens.append(Token(TokenKind.EOF, "", n))
    return tokens
