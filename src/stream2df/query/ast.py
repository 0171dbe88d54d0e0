"""Syntax tree of a parsed query."""

from dataclasses import dataclass, field
from typing import Optional, Union

from stream2df.utils.arrow import PyValue


class Expression:
    """Marker base class of all expression nodes."""


@dataclass(frozen=True)
class Column(Expression):
    name: str
    table: Optional[str] = None

    def __str__(self) -> str:
        return self.name if self.table is None else f"{self.table}.{self.name}"


@dataclass(frozen=True)
class Literal(Expression):
    value: PyValue

    def __str__(self) -> str:
        if self.value is None:
            return "NULL"
        if isinstance(self.value, bool):
            return "TRUE" if self.value else "FALSE"
        if isinstance(self.value, str):
            escaped = self.value.replace("'", "''")
            return f"'{escaped}'"
        return str(self.value)


@dataclass(frozen=True)
class Comparison(Expression):
    op: str
    left: Expression
    right: Expression

    def __str__(self) -> str:
        return f"{self.left} {self.op} {self.right}"


@dataclass(frozen=True)
class InList(Expression):
    operand: Expression
    values: tuple[Literal, ...]
    negated: bool = False

    def __str__(self) -> str:
        values = ", ".join(map(str, self.values))
        return f"{self.operand} {'NOT IN' if self.negated else 'IN'} ({values})"


@dataclass(frozen=True)
class IsNull(Expression):
    operand: Expression
    negated: bool = False

    def __str__(self) -> str:
        return f"{self.operand} IS {'NOT NULL' if self.negated else 'NULL'}"


@dataclass(frozen=True)
class Like(Expression):
    operand: Expression
    pattern: str
    negated: bool = False
    case_insensitive: bool = False

    def __str__(self) -> str:
        op = "ILIKE" if self.case_insensitive else "LIKE"
        if self.negated:
            op = f"NOT {op}"
        return f"{self.operand} {op} {Literal(self.pattern)}"


@dataclass(frozen=True)
class Between(Expression):
    operand: Expression
    low: Expression
    high: Expression
    negated: bool = False

    def __str__(self) -> str:
        op = "NOT BETWEEN" if self.negated else "BETWEEN"
        return f"{self.operand} {op} {self.low} AND {self.high}"


@dataclass(frozen=True)
class Not(Expression):
    operand: Expression

    def __str__(self) -> str:
        return f"NOT ({self.operand})"


@dataclass(frozen=True)
class And(Expression):
    left: Expression
    right: Expression

    def __str__(self) -> str:
        return f"({self.left}) AND ({self.right})"


@dataclass(frozen=True)
class Or(Expression):
    left: Expression
    right: Expression

    def __str__(self) -> str:
        return f"({self.left}) OR ({self.right})"


@dataclass(frozen=True)
class Star:
    table: Optional[str] = None

    def __str__(self) -> str:
        return "*" if self.table is None else f"{self.table}.*"


@dataclass(frozen=True)
class SelectItem:
    expr: Union[Column, Literal]
    alias: Optional[str] = None

    @property
    def output_name(self) -> str:
        if self.alias is not None:
            return self.alias
        if isinstance(self.expr, Column):
            return self.expr.name
        return str(self.expr)


@dataclass(frozen=True)
class OrderItem:
    """A sort key. `key` is an expression or a 1-based output position."""

    key: Union[Column, int]
    descending: bool = False
    nulls_first: Optional[bool] = None

    @property
    def effective_nulls_first(self) -> bool:
        # Nulls compare larger than any value, as in PostgreSQL and DataFusion.
        if self.nulls_first is None:
            return self.descending
        return self.nulls_first


@dataclass(frozen=True)
class Select:
    items: tuple[Union[SelectItem, Star], ...]
    table: str
    where: Optional[Expression] = None
    order_by: tuple[OrderItem, ...] = field(default_factory=tuple)
    limit: Optional[int] = None
    offset: int = 0
    distinct: bool = False
