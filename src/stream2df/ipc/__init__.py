from .reader import (  # noqa: F401
    AsyncRecordBatchStreamReader,
    iter_batches,
    read_table,
    read_table_async,
)
from .writer import to_ipc_bytes, write_batches, write_table  # noqa: F401
from .convert import arrow_dict_to_json_dict, to_json_rows, write_json_rows  # noqa: F401
