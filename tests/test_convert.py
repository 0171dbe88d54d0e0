import datetime
import io
import json
from decimal import Decimal

import numpy as np
import pyarrow as pa

from stream2df.ipc.convert import arrow_dict_to_json_dict, to_json_rows, write_json_rows


def test_arrow_dict_to_json_dict():
    row = {
        "path": "src/lib.rs",
        "size": np.uint64(9000),
        "ratio": np.float32(0.5),
        "price": Decimal("1.25"),
        "hash": b"\x00\xff",
        "last_modification_time": datetime.datetime(2023, 11, 14, 22, 13, 20),
        "day": datetime.date(2023, 11, 14),
        "age": datetime.timedelta(minutes=2),
        "tags": ["a", None],
        "nested": {"pair": ("x", 1)},
        "missing": None,
    }
    assert arrow_dict_to_json_dict(row) == {
        "path": "src/lib.rs",
        "size": 9000,
        "ratio": 0.5,
        "price": 1.25,
        "hash": "AP8=",
        "last_modification_time": "2023-11-14T22:13:20",
        "day": "2023-11-14",
        "age": 120.0,
        "tags": ["a", None],
        "nested": {"pair": ["x", 1]},
        "missing": None,
    }


def test_to_json_rows(git_status):
    rows = list(to_json_rows(git_status.to_batches(max_chunksize=3)))
    assert len(rows) == 10
    assert rows[0] == {
        "path": "src/lib.rs",
        "status": "Modified",
        "item_type": "IndexWorktree",
        "extension": "rs",
        "size": 9000,
        "last_modification_time": "2023-11-14T22:13:20",
    }
    assert rows[2]["size"] is None


def test_write_json_rows(git_status):
    sink = io.BytesIO()
    assert write_json_rows(git_status.slice(0, 3), sink, max_rows=2) == 3
    lines = sink.getvalue().decode().splitlines()
    assert [json.loads(line)["path"] for line in lines] == [
        "src/lib.rs",
        "Cargo.toml",
        "README.md",
    ]


def test_write_json_rows_empty():
    sink = io.BytesIO()
    table = pa.table({"a": pa.array([], pa.int64())})
    assert write_json_rows(table, sink) == 0
    assert sink.getvalue() == b""


def test_non_finite_floats_become_null():
    row = {"a": float("nan"), "b": float("inf"), "c": np.float64("-inf"), "d": 1.5}
    assert arrow_dict_to_json_dict(row) == {"a": None, "b": None, "c": None, "d": 1.5}
    sink = io.BytesIO()
    table = pa.table({"x": pa.array([float("nan"), 2.0])})
    assert write_json_rows(table, sink) == 2
    assert sink.getvalue() == b'{"x": null}\n{"x": 2.0}\n'
