"""Recursive-descent parser for the supported SQL subset.

Grammar, lowest precedence first:

    select    := SELECT [DISTINCT] items FROM name [WHERE expr]
                 [ORDER BY key {, key}] [LIMIT int] [OFFSET int] [;]
    items     := item {, item}
    item      := * | name.* | operand [[AS] name]
    expr      := conj {OR conj}
    conj      := neg {AND neg}
    neg       := NOT neg | predicate
    predicate := operand [cmp operand
                         | [NOT] IN (literal {, literal})
                         | IS [NOT] NULL
                         | [NOT] (LIKE | ILIKE) string
                         | [NOT] BETWEEN operand AND operand]
    operand   := column | literal | ( expr )
    key       := (column | int) [ASC | DESC] [NULLS (FIRST | LAST)]
"""

from typing import Optional, Union

from stream2df.errors import SqlSyntaxError
from stream2df.query.ast import (
    And,
    Between,
    Column,
    Comparison,
    Expression,
    InList,
    IsNull,
    Like,
    Literal,
    Not,
    Or,
    OrderItem,
    Select,
    SelectItem,
    Star,
)
from stream2df.query.lexer import Token, TokenKind, tokenize

COMPARISON_OPERATORS = ("=", "!=", "<>", "<", "<=", ">", ">=")


class Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.current
        if token.kind is not TokenKind.EOF:
            self.pos += 1
        return token

    def error(self, expected: str) -> SqlSyntaxError:
        return SqlSyntaxError(
            f"expected {expected}, found {self.current}", position=self.current.position
        )

    def accept_keyword(self, *names: str) -> Optional[Token]:
        if self.current.is_keyword(*names):
            return self.advance()
        return None

    def expect_keyword(self, name: str) -> Token:
        token = self.accept_keyword(name)
        if token is None:
            raise self.error(name)
        return token

    def accept_operator(self, *ops: str) -> Optional[Token]:
        if self.current.is_operator(*ops):
            return self.advance()
        return None

    def expect_operator(self, op: str) -> Token:
        token = self.accept_operator(op)
        if token is None:
            raise self.error(f"'{op}'")
        return token

    def expect_identifier(self, what: str = "identifier") -> str:
        if self.current.kind is not TokenKind.IDENTIFIER:
            raise self.error(what)
        return str(self.advance().value)

    # -- statements ---------------------------------------------------------

    def parse(self) -> Select:
        select = self.select()
        self.accept_operator(";")
        if self.current.kind is not TokenKind.EOF:
            raise self.error("end of query")
        return select

    def select(self) -> Select:
        self.expect_keyword("SELECT")
        distinct = self.accept_keyword("DISTINCT") is not None
        items = [self.select_item()]
        while self.accept_operator(","):
            items.append(self.select_item())
        self.expect_keyword("FROM")
        table = self.expect_identifier("table name")
        where = None
        if self.accept_keyword("WHERE"):
            where = self.expr()
        order_by: list[OrderItem] = []
        if self.accept_keyword("ORDER"):
            self.expect_keyword("BY")
            order_by.append(self.order_item())
            while self.accept_operator(","):
                order_by.append(self.order_item())
        limit = None
        offset = 0
        # Accept both `LIMIT n OFFSET m` and `OFFSET m LIMIT n`.
        for _ in range(2):
            if limit is None and self.accept_keyword("LIMIT"):
                limit = self.non_negative_integer("LIMIT")
            elif offset == 0 and self.accept_keyword("OFFSET"):
                offset = self.non_negative_integer("OFFSET")
        return Select(
            items=tuple(items),
            table=table,
            where=where,
            order_by=tuple(order_by),
            limit=limit,
            offset=offset,
            distinct=distinct,
        )

    def non_negative_integer(self, clause: str) -> int:
        token = self.current
        if token.kind is not TokenKind.NUMBER or not isinstance(token.value, int):
            raise self.error(f"non-negative integer after {clause}")
        self.advance()
        return int(token.value)

    def select_item(self) -> Union[SelectItem, Star]:
        if self.accept_operator("*"):
            return Star()
        if (
            self.current.kind is TokenKind.IDENTIFIER
            and self.peek().is_operator(".")
            and self.peek(2).is_operator("*")
        ):
            table = str(self.advance().value)
            self.advance()
            self.advance()
            return Star(table)
        expr = self.operand()
        if not isinstance(expr, (Column, Literal)):
            raise SqlSyntaxError(
                "only columns and literals can be selected", position=self.current.position
            )
        alias = None
        if self.accept_keyword("AS"):
            alias = self.expect_identifier("alias")
        elif self.current.kind is TokenKind.IDENTIFIER:
            alias = str(self.advance().value)
        return SelectItem(expr, alias)

    def order_item(self) -> OrderItem:
        key: Union[Column, int]
        token = self.current
        if token.kind is TokenKind.NUMBER:
            if not isinstance(token.value, int) or token.value < 1:
                raise self.error("positive output position")
            self.advance()
            key = int(token.value)
        else:
            key = self.column()
        descending = False
        if self.accept_keyword("DESC"):
            descending = True
        else:
            self.accept_keyword("ASC")
        nulls_first = None
        if self.accept_keyword("NULLS"):
            if self.accept_keyword("FIRST"):
                nulls_first = True
            elif self.accept_keyword("LAST"):
                nulls_first = False
            else:
                raise self.error("FIRST or LAST")
        return OrderItem(key, descending=descending, nulls_first=nulls_first)

    # -- expressions --------------------------------------------------------

    def expr(self) -> Expression:
        left = self.conjunction()
        while self.accept_keyword("OR"):
            left = Or(left, self.conjunction())
        return left

    def conjunction(self) -> Expression:
        left = self.negation()
        while self.accept_keyword("AND"):
            left = And(left, self.negation())
        return left

    def negation(self) -> Expression:
        if self.accept_keyword("NOT"):
            return Not(self.negation())
        return self.predicate()

    def predicate(self) -> Expression:
        left = self.operand()
        op = self.accept_operator(*COMPARISON_OPERATORS)
        if op is not None:
            return Comparison(str(op.value), left, self.operand())
        if self.accept_keyword("IS"):
            negated = self.accept_keyword("NOT") is not None
            self.expect_keyword("NULL")
            return IsNull(left, negated)
        negated = False
        if self.current.is_keyword("NOT") and self.peek().is_keyword(
            "IN", "LIKE", "ILIKE", "BETWEEN"
        ):
            self.advance()
            negated = True
        if self.accept_keyword("IN"):
            return InList(left, self.literal_list(), negated)
        like = self.accept_keyword("LIKE", "ILIKE")
        if like is not None:
            if self.current.kind is not TokenKind.STRING:
                raise self.error("string pattern")
            pattern = str(self.advance().value)
            return Like(left, pattern, negated, case_insensitive=like.value == "ILIKE")
        if self.accept_keyword("BETWEEN"):
            low = self.operand()
            self.expect_keyword("AND")
            high = self.operand()
            return Between(left, low, high, negated)
        if negated:
            raise self.error("IN, LIKE, ILIKE or BETWEEN")
        return left

    def literal_list(self) -> tuple[Literal, ...]:
        self.expect_operator("(")
        values = [self.literal()]
        while self.accept_operator(","):
            values.append(self.literal())
        self.expect_operator(")")
        return tuple(values)

    def operand(self) -> Expression:
        if self.accept_operator("("):
            inner = self.expr()
            self.expect_operator(")")
            return inner
        if self.current.kind is TokenKind.IDENTIFIER:
            return self.column()
        return self.literal()

    def column(self) -> Column:
        name = self.expect_identifier("column name")
        if self.accept_operator("."):
            return Column(self.expect_identifier("column name"), table=name)
        return Column(name)

    def literal(self) -> Literal:
        token = self.current
        if token.kind is TokenKind.STRING:
            self.advance()
            return Literal(token.value)
        if token.kind is TokenKind.NUMBER:
            self.advance()
            return Literal(token.value)
        if token.is_operator("-") and self.peek().kind is TokenKind.NUMBER:
            self.advance()
            return Literal(-self.advance().value)
        if token.is_keyword("NULL"):
            self.advance()
            return Literal(None)
        if token.is_keyword("TRUE", "FALSE"):
            self.advance()
            return Literal(token.value == "TRUE")
        raise self.error("literal")


def parse(text: str) -> Select:
    """Parse a query into its syntax tree."""
    return Parser(text).parse()
