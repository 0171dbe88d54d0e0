from __future__ import annotations

import os
from collections.abc import Iterable
from typing import BinaryIO, Optional, Union

import pyarrow as pa

import stream2df.utils.logging

logger = stream2df.utils.logging.get(__name__)

Sink = Union[str, os.PathLike, pa.NativeFile, BinaryIO]


def _check_max_rows(max_rows: Optional[int]) -> None:
    if max_rows is not None and max_rows <= 0:
        msg = f"max_rows must be positive, got {max_rows}"
        raise ValueError(msg)


def write_batches(
    batches: Iterable[pa.RecordBatch],
    sink: Sink,
    schema: pa.Schema,
) -> int:
    """Write the batches as one Arrow IPC stream and return the row count.

    The schema message is written even if there are no batches, so that an
    empty result is still a valid stream for the next pipeline stage."""
    num_rows = 0
    num_batches = 0
    with pa.ipc.new_stream(sink, schema) as writer:
        for batch in batches:
            writer.write_batch(batch)
            num_rows += batch.num_rows
            num_batches += 1
    logger.debug(f"wrote {num_rows} rows in {num_batches} batches")
    return num_rows


def write_table(table: pa.Table, sink: Sink, max_rows: Optional[int] = None) -> int:
    """Write the table as an Arrow IPC stream with at most `max_rows` rows per
    record batch."""
    _check_max_rows(max_rows)
    # Batch boundaries depend on max_rows only, not on input chunking.
    table = table.combine_chunks()
    batches = table.to_batches(max_chunksize=max_rows)
    # Skip zero-length chunks; readers treat them as noise.
    return write_batches((b for b in batches if b.num_rows > 0), sink, table.schema)


def to_ipc_bytes(table: pa.Table, max_rows: Optional[int] = None) -> bytes:
    sink = pa.BufferOutputStream()
    write_table(table, sink, max_rows=max_rows)
    return sink.getvalue().to_pybytes()
