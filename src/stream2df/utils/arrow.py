from datetime import date, datetime, timedelta
from decimal import Decimal
from types import MappingProxyType
from typing import Optional, Union

import pyarrow as pa
import pyarrow.compute as pc

ArrowColumn = Union[pa.Array, pa.ChunkedArray]

PyValue = Union[str, bool, int, float, Decimal, datetime, date, timedelta, bytes, None]


def value_type(datatype: pa.DataType) -> pa.DataType:
    """Return the logical type of a column, looking through dictionary
    encoding."""
    if pa.types.is_dictionary(datatype):
        return datatype.value_type
    return datatype


def decode_dictionary(column: ArrowColumn) -> ArrowColumn:
    """Replace a dictionary-encoded column by its plain representation.

    Compute kernels such as `is_in` or `sort_indices` do not accept
    dictionary input uniformly across PyArrow versions, so predicates and
    sort keys operate on the decoded values."""
    if pa.types.is_dictionary(column.type):
        return column.cast(column.type.value_type)
    return column


def is_stringlike(datatype: pa.DataType) -> bool:
    ty = value_type(datatype)
    return pa.types.is_string(ty) or pa.types.is_large_string(ty)


def infer_type(obj: PyValue) -> pa.DataType:
    """Map a python literal to the corresponding Arrow type.

    This is a best-effort mapping for query literals and test data; values
    that have a natural column type (e.g. a string compared with a timestamp
    column) are cast later with `coerce_scalar`."""
    if obj is None:
        return pa.null()
    if isinstance(obj, str):
        return pa.string()
    if isinstance(obj, bool):
        return pa.bool_()
    # In python `isinstance(True, int) == True` so this needs to be after
    # the check for bool type.
    if isinstance(obj, int):
        if -(2**63) <= obj < 2**63:
            return pa.int64()
        if 0 <= obj < 2**64:
            return pa.uint64()
        msg = f"integer {obj} does not fit into 64 bits"
        raise TypeError(msg)
    if isinstance(obj, float):
        return pa.float64()
    if isinstance(obj, Decimal):
        return pa.float64()
    if isinstance(obj, datetime):
        return pa.timestamp("us")
    if isinstance(obj, date):
        return pa.date32()
    if isinstance(obj, timedelta):
        return pa.duration("us")
    if isinstance(obj, bytes):
        return pa.binary()
    msg = f"cannot convert value of type {type(obj)} to arrow"
    raise TypeError(msg)


def scalar(value: PyValue) -> pa.Scalar:
    """Build an Arrow scalar for a python literal."""
    if isinstance(value, Decimal):
        value = float(value)
    return pa.scalar(value, type=infer_type(value))


def coerce_scalar(value: PyValue, target: pa.DataType) -> pa.Scalar:
    """Build a scalar that can be compared against a column of `target` type.

    Strings compared to temporal columns are parsed as ISO 8601 values of the
    column's type; without a zone offset they are taken as local time in the
    column's time zone. Integers take the type of integer columns they fit
    into and become floats next to floating point columns. Everything else
    keeps its natural type and relies on the implicit casts of the compute
    kernels."""
    target = value_type(target)
    if value is None:
        return pa.scalar(None, type=target)
    if isinstance(value, int) and not isinstance(value, bool):
        if pa.types.is_floating(target):
            return pa.scalar(float(value), type=pa.float64())
        if pa.types.is_integer(target):
            # Compare in the column's own type where the value fits, so that
            # unsigned columns do not depend on mixed-sign kernel dispatch.
            try:
                return pa.scalar(value, type=target)
            except (pa.ArrowInvalid, OverflowError):
                pass
    result = scalar(value)
    if pa.types.is_temporal(target) and isinstance(value, str):
        # Casting utf8 to date is not implemented in every release, so go
        # through a timestamp first.
        if pa.types.is_date(target):
            return result.cast(pa.timestamp("s")).cast(target)
        if pa.types.is_timestamp(target) and target.tz is not None:
            return _zoned_timestamp(result, target)
        return result.cast(target)
    if pa.types.is_temporal(target) and isinstance(value, (datetime, date)):
        return result.cast(target)
    return result


def _zoned_timestamp(text: pa.Scalar, target: pa.TimestampType) -> pa.Scalar:
    try:
        return text.cast(target)
    except pa.ArrowInvalid:
        naive = text.cast(pa.timestamp(target.unit))
    return pc.assume_timezone(naive, timezone=target.tz)


def coerce_array(values: list[PyValue], target: pa.DataType) -> pa.Array:
    """Build an array of literals comparable against a column of `target`
    type, as used for `IN (...)` lists."""
    target = value_type(target)
    scalars = [coerce_scalar(v, target) for v in values if v is not None]
    if not scalars:
        return pa.array([], type=target)
    # The value set of `is_in` must have the type of the column.
    try:
        return pa.array([s.as_py() for s in scalars], type=target)
    except (pa.ArrowInvalid, pa.ArrowTypeError, pa.ArrowNotImplementedError, OverflowError) as e:
        msg = f"cannot unify IN list literals {values!r} as {target}: {e}"
        raise TypeError(msg) from e


def make_table(
    data: dict[str, list],
    type_hints: MappingProxyType[str, pa.DataType] = MappingProxyType({}),
) -> pa.Table:
    """Create a table from a python object.

    Columns without a type hint get the type of their first non-null value."""

    def find_first_nonnull(xs: list[PyValue]) -> Optional[PyValue]:
        return next((x for x in xs if x is not None), None)

    arrays = []
    fields = []
    for name, value in data.items():
        type_ = (
            type_hints[name]
            if name in type_hints
            else infer_type(find_first_nonnull(value))
        )
        fields.append(pa.field(name, type_))
        if pa.types.is_dictionary(type_):
            arrays.append(pa.array(value, type_.value_type).dictionary_encode())
        else:
            arrays.append(pa.array(value, type_))
    return pa.Table.from_arrays(arrays, schema=pa.schema(fields))


def schema_summary(schema: pa.Schema) -> str:
    """Render a schema as `name: type` pairs on one line, for log messages."""
    return ", ".join(f"{field.name}: {field.type}" for field in schema)

