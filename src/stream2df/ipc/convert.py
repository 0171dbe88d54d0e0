import base64
import datetime
import json
import math
from decimal import Decimal
from typing import IO, Any, Iterable, Iterator, Optional

import numpy as np
import pyarrow as pa

import stream2df.utils.logging

logger = stream2df.utils.logging.get(__name__)

_JSON_COMPATIBILITY_DOCSTRING_ = """JSON types are numbers, booleans, strings, arrays and objects
- dates and times are formated with ISO 8601
- durations are given in seconds
- NaN and infinite floats become null
- raw bytes are Base64 encoded"""


def _json_value(value):
    if isinstance(value, dict):
        return arrow_dict_to_json_dict(value)
    if isinstance(value, list):
        return [_json_value(item) for item in value]
    if isinstance(value, tuple):
        return [_json_value(item) for item in value]
    if isinstance(value, (float, np.floating, Decimal)):
        value = float(value)
        return value if math.isfinite(value) else None
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, bytes):
        return base64.b64encode(value).decode()
    if isinstance(value, (datetime.time, datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    return str(value)


def arrow_dict_to_json_dict(dictionary: dict[str, Any]) -> dict[str, Any]:
    for key, value in dictionary.items():
        dictionary[key] = _json_value(value)
    return dictionary


arrow_dict_to_json_dict.__doc__ = f"""Convert a result item of PyArrow to_pylist
into a dictionary with JSON compatible value types

{_JSON_COMPATIBILITY_DOCSTRING_}"""


def to_json_rows(batches: Iterable[pa.RecordBatch]) -> Iterator[dict[str, Any]]:
    for batch in batches:
        for row in batch.to_pylist():
            yield arrow_dict_to_json_dict(row)


to_json_rows.__doc__ = f"""Convert record batches to a row by row iterator with
value types dumbed down to JSON compatible types

{_JSON_COMPATIBILITY_DOCSTRING_}"""


def write_json_rows(
    table: pa.Table, sink: IO[bytes], max_rows: Optional[int] = None
) -> int:
    """Write the table as newline-delimited JSON and return the row count."""
    num_rows = 0
    for row in to_json_rows(table.to_batches(max_chunksize=max_rows)):
        sink.write(json.dumps(row, allow_nan=False).encode())
        sink.write(b"\n")
        num_rows += 1
    logger.debug(f"wrote {num_rows} rows as JSON")
    return num_rows
