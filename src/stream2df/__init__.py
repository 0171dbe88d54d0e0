_IPC_EXPORTS = {
    "AsyncRecordBatchStreamReader",
    "iter_batches",
    "read_table",
    "read_table_async",
    "to_ipc_bytes",
    "write_batches",
    "write_table",
}
_QUERY_EXPORTS = {
    "QueryEngine",
    "execute_sql",
    "parse",
}
_ERROR_EXPORTS = {
    "EmptyStreamError",
    "QueryError",
    "SchemaMismatchError",
    "SqlSyntaxError",
    "Stream2dfError",
    "StreamError",
    "UnknownColumnError",
    "UnknownTableError",
}

__all__ = sorted(_IPC_EXPORTS | _QUERY_EXPORTS | _ERROR_EXPORTS)


def __getattr__(name):
    if name in _IPC_EXPORTS:
        from . import ipc as _ipc_mod

        return getattr(_ipc_mod, name)
    if name in _QUERY_EXPORTS:
        from . import query as _query_mod

        return getattr(_query_mod, name)
    if name in _ERROR_EXPORTS:
        from . import errors as _errors_mod

        return getattr(_errors_mod, name)
    raise AttributeError(name)
