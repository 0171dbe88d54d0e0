from __future__ import annotations

from typing import Optional, Union

import pyarrow as pa
import pyarrow.compute as pc

import stream2df.utils.arrow
import stream2df.utils.logging
from stream2df.errors import QueryError, UnknownColumnError, UnknownTableError
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
    Star,
)
from stream2df.query.parser import parse

logger = stream2df.utils.logging.get(__name__)

Value = Union[pa.Array, pa.ChunkedArray, pa.Scalar]

_ARROW_ERRORS = (pa.ArrowInvalid, pa.ArrowNotImplementedError, pa.ArrowTypeError)

_COMPARISONS = {
    "=": pc.equal,
    "!=": pc.not_equal,
    "<>": pc.not_equal,
    "<": pc.less,
    "<=": pc.less_equal,
    ">": pc.greater,
    ">=": pc.greater_equal,
}

_NULL_BOOL = pa.scalar(None, type=pa.bool_())


def _find_name(name: str, names: list[str]) -> Optional[str]:
    """Match exactly, else case-insensitively if that is unambiguous."""
    if name in names:
        return name
    folded = {n for n in names if n.casefold() == name.casefold()}
    if len(folded) == 1:
        return folded.pop()
    return None


def _literal_scalar(literal: Literal) -> pa.Scalar:
    try:
        return stream2df.utils.arrow.scalar(literal.value)
    except (TypeError, OverflowError, *_ARROW_ERRORS) as e:
        msg = f"cannot use {literal} as a value: {e}"
        raise QueryError(msg) from e


def _is_boolean(value: Value) -> bool:
    return pa.types.is_boolean(value.type) or pa.types.is_null(value.type)


class _Evaluator:
    """Evaluates expressions against one table into boolean masks or values.

    Columns are evaluated with their dictionary encoding removed, literals are
    typed after the column they are compared with."""

    def __init__(self, table: pa.Table, table_name: str):
        self.table = table
        self.table_name = table_name

    def column_name(self, column: Column) -> str:
        if column.table is not None and column.table.casefold() != self.table_name.casefold():
            msg = f"column '{column}' refers to table '{column.table}', which is not in FROM"
            raise QueryError(msg)
        name = _find_name(column.name, self.table.column_names)
        if name is None:
            raise UnknownColumnError(column.name, self.table.column_names)
        if len(self.table.schema.get_all_field_indices(name)) > 1:
            msg = f"column '{name}' is ambiguous: the input has several columns of that name"
            raise QueryError(msg)
        return name

    def column(self, column: Column) -> pa.ChunkedArray:
        array = self.table.column(self.column_name(column))
        return stream2df.utils.arrow.decode_dictionary(array)

    def literal(self, literal: Literal, peer: Optional[Value]) -> pa.Scalar:
        if peer is None or pa.types.is_null(peer.type):
            return _literal_scalar(literal)
        try:
            return stream2df.utils.arrow.coerce_scalar(literal.value, peer.type)
        except (TypeError, OverflowError, *_ARROW_ERRORS) as e:
            msg = f"cannot use {literal} as a value of type {peer.type}: {e}"
            raise QueryError(msg) from e

    def operands(self, left: Expression, right: Expression) -> tuple[Value, Value]:
        """Evaluate a pair of operands, typing literals after their peer."""
        lhs = None if isinstance(left, Literal) else self.evaluate(left)
        rhs = None if isinstance(right, Literal) else self.evaluate(right)
        if isinstance(left, Literal):
            lhs = self.literal(left, rhs)
        if isinstance(right, Literal):
            rhs = self.literal(right, lhs)
        return lhs, rhs

    def boolean(self, expr: Expression) -> Value:
        value = self.evaluate(expr)
        if not _is_boolean(value):
            msg = f"expected a boolean expression, got '{expr}' of type {value.type}"
            raise QueryError(msg)
        if pa.types.is_null(value.type):
            # A bare NULL, e.g. `WHERE NULL`, is an unknown truth value.
            return value.cast(pa.bool_())
        return value

    def evaluate(self, expr: Expression) -> Value:
        try:
            return self._evaluate(expr)
        except _ARROW_ERRORS as e:
            msg = f"cannot evaluate '{expr}': {e}"
            raise QueryError(msg) from e

    def _evaluate(self, expr: Expression) -> Value:
        if isinstance(expr, Column):
            return self.column(expr)
        if isinstance(expr, Literal):
            return self.literal(expr, None)
        if isinstance(expr, Comparison):
            lhs, rhs = self.operands(expr.left, expr.right)
            return _COMPARISONS[expr.op](lhs, rhs)
        if isinstance(expr, And):
            return pc.and_kleene(self.boolean(expr.left), self.boolean(expr.right))
        if isinstance(expr, Or):
            return pc.or_kleene(self.boolean(expr.left), self.boolean(expr.right))
        if isinstance(expr, Not):
            return pc.invert(self.boolean(expr.operand))
        if isinstance(expr, IsNull):
            operand = self.evaluate(expr.operand)
            return pc.is_valid(operand) if expr.negated else pc.is_null(operand)
        if isinstance(expr, InList):
            return self.in_list(expr)
        if isinstance(expr, Like):
            return self.like(expr)
        if isinstance(expr, Between):
            lower = pc.greater_equal(*self.operands(expr.operand, expr.low))
            upper = pc.less_equal(*self.operands(expr.operand, expr.high))
            result = pc.and_kleene(lower, upper)
            return pc.invert(result) if expr.negated else result
        msg = f"unsupported expression: {expr}"
        raise QueryError(msg)

    def broadcast(self, value: Value) -> Union[pa.Array, pa.ChunkedArray]:
        if isinstance(value, pa.Scalar):
            return pa.repeat(value, self.table.num_rows)
        return value

    def in_list(self, expr: InList) -> Value:
        operand = self.broadcast(self.evaluate(expr.operand))
        if pa.types.is_null(operand.type):
            # `NULL [NOT] IN (...)` is null whatever the list holds.
            return pa.nulls(len(operand), pa.bool_())
        values = [literal.value for literal in expr.values]
        try:
            value_set = stream2df.utils.arrow.coerce_array(values, operand.type)
        except TypeError as e:
            raise QueryError(str(e)) from e
        found = pc.is_in(operand, value_set=value_set)
        # `is_in` answers false for null input; SQL answers null.
        result = pc.if_else(pc.is_null(operand), _NULL_BOOL, found)
        if any(value is None for value in values):
            # `x IN (..., NULL)` is null unless x matches a non-null value.
            result = pc.if_else(result, True, _NULL_BOOL)
        return pc.invert(result) if expr.negated else result

    def like(self, expr: Like) -> Value:
        operand = self.broadcast(self.evaluate(expr.operand))
        if not stream2df.utils.arrow.is_stringlike(operand.type):
            msg = f"LIKE requires a string operand, got '{expr.operand}' of type {operand.type}"
            raise QueryError(msg)
        result = pc.match_like(operand, expr.pattern, ignore_case=expr.case_insensitive)
        return pc.invert(result) if expr.negated else result

    def mask(self, expr: Expression) -> Union[pa.Array, pa.ChunkedArray]:
        return self.broadcast(self.boolean(expr))


class _Projection:
    """The output columns of a query, in order."""

    def __init__(self, query: Select, evaluator: _Evaluator):
        self.sources: list[Union[str, Literal]] = []
        self.names: list[str] = []
        schema = evaluator.table.schema
        for item in query.items:
            if isinstance(item, Star):
                if item.table is not None and item.table.casefold() != query.table.casefold():
                    msg = f"'{item}' refers to table '{item.table}', which is not in FROM"
                    raise QueryError(msg)
                for name in schema.names:
                    self.add(name, name)
            elif isinstance(item.expr, Column):
                self.add(evaluator.column_name(item.expr), item.output_name)
            else:
                self.add(item.expr, item.output_name)
        duplicates = sorted({n for n in self.names if self.names.count(n) > 1})
        if duplicates:
            msg = f"duplicate output column names: {', '.join(duplicates)}"
            raise QueryError(msg)

    def add(self, source: Union[str, Literal], name: str) -> None:
        self.sources.append(source)
        self.names.append(name)

    def source_of(self, name: str) -> Optional[Union[str, Literal]]:
        found = _find_name(name, self.names)
        if found is None:
            return None
        return self.sources[self.names.index(found)]

    def apply(self, table: pa.Table) -> pa.Table:
        arrays = []
        fields = []
        for source, name in zip(self.sources, self.names):
            if isinstance(source, Literal):
                value = _literal_scalar(source)
                arrays.append(pa.repeat(value, table.num_rows))
                fields.append(pa.field(name, value.type))
            else:
                arrays.append(table.column(source))
                fields.append(table.schema.field(source).with_name(name))
        schema = pa.schema(fields, metadata=table.schema.metadata)
        return pa.Table.from_arrays(arrays, schema=schema)


def _sort(
    table: pa.Table,
    order_by: tuple[OrderItem, ...],
    projection: _Projection,
    evaluator: _Evaluator,
) -> pa.Table:
    """Stable multi-key sort; every key places its nulls separately."""
    arrays = []
    sort_keys = []
    for i, item in enumerate(order_by):
        source: Optional[Union[str, Literal]]
        if isinstance(item.key, int):
            if item.key > len(projection.names):
                msg = f"ORDER BY position {item.key} is not in select list"
                raise QueryError(msg)
            source = projection.sources[item.key - 1]
        else:
            source = None
            if item.key.table is None:
                source = projection.source_of(item.key.name)
            if source is None:
                source = evaluator.column_name(item.key)
        if isinstance(source, Literal):
            # A constant key does not change the order.
            continue
        values = stream2df.utils.arrow.decode_dictionary(table.column(source))
        # False sorts before True: ascending nulls flags put nulls last.
        arrays.append(pc.is_null(values))
        sort_keys.append((f"nulls{i}", "descending" if item.effective_nulls_first else "ascending"))
        arrays.append(values)
        sort_keys.append((f"key{i}", "descending" if item.descending else "ascending"))
    if not sort_keys:
        return table
    keys = pa.Table.from_arrays(arrays, names=[name for name, _ in sort_keys])
    try:
        indices = pc.sort_indices(keys, sort_keys=sort_keys)
    except _ARROW_ERRORS as e:
        msg = f"cannot sort by {', '.join(map(str, order_by))}: {e}"
        raise QueryError(msg) from e
    return table.take(indices)


def _distinct(table: pa.Table) -> pa.Table:
    """Keep the first occurrence of every distinct row."""
    if table.num_rows == 0 or table.num_columns == 0:
        return table
    names = [f"c{i}" for i in range(table.num_columns)]
    columns = [stream2df.utils.arrow.decode_dictionary(c) for c in table.columns]
    keyed = pa.Table.from_arrays(
        [*columns, pa.array(range(table.num_rows), pa.int64())],
        names=[*names, "row"],
    )
    try:
        firsts = keyed.group_by(names).aggregate([("row", "min")])
    except _ARROW_ERRORS as e:
        msg = f"cannot apply DISTINCT: {e}"
        raise QueryError(msg) from e
    rows = firsts.column("row_min")
    return table.take(rows.take(pc.sort_indices(rows)))


class QueryEngine:
    """Executes queries against named in-memory tables."""

    def __init__(self) -> None:
        self._tables: dict[str, pa.Table] = {}

    def register(self, name: str, table: pa.Table) -> None:
        if not name:
            raise ValueError("table name must not be empty")
        self._tables[name] = table
        logger.debug(
            f"registered table {name} with {table.num_rows} rows: "
            f"{stream2df.utils.arrow.schema_summary(table.schema)}"
        )

    @property
    def tables(self) -> list[str]:
        return sorted(self._tables)

    def table(self, name: str) -> tuple[str, pa.Table]:
        found = _find_name(name, list(self._tables))
        if found is None:
            raise UnknownTableError(name, self.tables)
        return found, self._tables[found]

    def execute(self, sql: Union[str, Select]) -> pa.Table:
        query = parse(sql) if isinstance(sql, str) else sql
        return self.execute_query(query)

    def execute_query(self, query: Select) -> pa.Table:
        name, table = self.table(query.table)
        evaluator = _Evaluator(table, name)
        projection = _Projection(query, evaluator)
        if query.where is not None:
            logger.debug(f"filter: {query.where}")
            table = table.filter(evaluator.mask(query.where))
            evaluator = _Evaluator(table, name)
        if query.order_by:
            logger.debug(f"order by {len(query.order_by)} keys")
            table = _sort(table, query.order_by, projection, evaluator)
        result = projection.apply(table)
        if query.distinct:
            result = _distinct(result)
        if query.offset or query.limit is not None:
            result = result.slice(query.offset, query.limit)
        logger.info(f"query produced {result.num_rows} of {self._tables[name].num_rows} rows")
        return result


def execute_sql(table: pa.Table, name: str, sql: str) -> pa.Table:
    """Run a single query against `table` registered as `name`."""
    engine = QueryEngine()
    engine.register(name, table)
    return engine.execute(sql)
