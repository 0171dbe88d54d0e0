from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterable, Iterator
from typing import BinaryIO, Optional, Union

import pyarrow as pa

import stream2df.utils.arrow
import stream2df.utils.logging
from stream2df.errors import EmptyStreamError, SchemaMismatchError, StreamError

logger = stream2df.utils.logging.get(__name__)

Source = Union[str, os.PathLike, bytes, bytearray, memoryview, pa.Buffer, pa.NativeFile, BinaryIO]


def _open_input(source: Source) -> pa.NativeFile:
    """Return a seekable Arrow input stream over the complete input.

    The input is buffered in full: the query needs the whole table anyway,
    and knowing the size lets us tell a follow-up stream from the end of the
    input."""
    if isinstance(source, (str, os.PathLike)):
        return pa.memory_map(os.fspath(source), "r")
    if isinstance(source, pa.Buffer):
        return pa.BufferReader(source)
    if isinstance(source, (bytes, bytearray, memoryview)):
        return pa.BufferReader(pa.py_buffer(source))
    if isinstance(source, pa.NativeFile):
        return pa.BufferReader(source.read_buffer())
    if hasattr(source, "read"):
        return pa.BufferReader(pa.py_buffer(source.read()))
    msg = f"Unsupported Arrow IPC input type: {type(source)!r}"
    raise TypeError(msg)


def _readers(source: Source) -> Iterator[pa.RecordBatchStreamReader]:
    """Open one stream reader per IPC stream contained in the input.

    A producer that writes multiple schemas opens a new stream writer for
    each of them, so the input may hold several streams back to back. Every
    reader must be consumed completely before the next one is opened."""
    with _open_input(source) as stream:
        size = stream.size()
        if size == 0:
            raise EmptyStreamError("input is empty; expected an Arrow IPC stream")
        schema: Optional[pa.Schema] = None
        index = 0
        while stream.tell() < size:
            offset = stream.tell()
            try:
                reader = pa.ipc.open_stream(stream)
            except (pa.ArrowInvalid, OSError) as e:
                msg = f"failed to read Arrow IPC stream at offset {offset}: {e}"
                raise StreamError(msg) from e
            logger.debug(
                f"opened stream #{index} at offset {offset}: "
                f"{stream2df.utils.arrow.schema_summary(reader.schema)}"
            )
            if schema is None:
                schema = reader.schema
            elif not reader.schema.equals(schema):
                msg = (
                    f"stream #{index} has schema "
                    f"[{stream2df.utils.arrow.schema_summary(reader.schema)}], "
                    f"expected [{stream2df.utils.arrow.schema_summary(schema)}]"
                )
                raise SchemaMismatchError(msg)
            yield reader
            index += 1


def _batches(reader: pa.RecordBatchStreamReader) -> Iterator[pa.RecordBatch]:
    while True:
        try:
            batch = reader.read_next_batch()
        except StopIteration:
            return
        except (pa.ArrowInvalid, OSError) as e:
            msg = f"failed to read record batch: {e}"
            raise StreamError(msg) from e
        yield batch


def iter_batches(source: Source) -> Iterator[pa.RecordBatch]:
    """Yield the record batches of all streams in the input, in order."""
    for reader in _readers(source):
        yield from _batches(reader)


def read_table(source: Source) -> pa.Table:
    """Decode the complete input into a single table."""
    schema: Optional[pa.Schema] = None
    batches: list[pa.RecordBatch] = []
    for reader in _readers(source):
        if schema is None:
            schema = reader.schema
        batches.extend(_batches(reader))
    table = pa.Table.from_batches(batches, schema=schema)
    logger.info(f"read {table.num_rows} rows in {len(batches)} batches")
    return table


class AsyncRecordBatchStreamReader(AsyncIterable[pa.RecordBatch]):
    """Async wrapper that reads record batches in a worker thread."""

    def __init__(self, source: Source) -> None:
        self._iterator = iter_batches(source)

    def __aiter__(self) -> AsyncRecordBatchStreamReader:
        return self

    async def __anext__(self) -> pa.RecordBatch:
        def _next_batch() -> Optional[pa.RecordBatch]:
            try:
                return next(self._iterator)
            except StopIteration:
                return None

        batch = await asyncio.to_thread(_next_batch)
        if batch is None:
            raise StopAsyncIteration
        return batch


async def read_table_async(source: Source) -> pa.Table:
    """Decode the complete input into a table without blocking the loop."""
    return await asyncio.to_thread(read_table, source)
