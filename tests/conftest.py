import pyarrow as pa
import pytest

from stream2df.ipc.writer import to_ipc_bytes

# The schema written by git-status2arrow-ipc-stream.
GIT_STATUS_SCHEMA = pa.schema(
    [
        pa.field("path", pa.string(), nullable=False),
        pa.field("status", pa.dictionary(pa.int32(), pa.string()), nullable=False),
        pa.field("item_type", pa.dictionary(pa.int32(), pa.string()), nullable=False),
        pa.field("extension", pa.string()),
        pa.field("size", pa.uint64()),
        pa.field("last_modification_time", pa.timestamp("s")),
    ]
)

GIT_STATUS_ROWS = [
    ("src/lib.rs", "Modified", "IndexWorktree", "rs", 9000, 1700000000),
    ("Cargo.toml", "Modified", "IndexWorktree", "toml", 500, 1700000100),
    ("README.md", "Added", "TreeIndex", "md", None, None),
    ("example.sh", "Untracked", "IndexWorktree", "sh", 700, 1700000200),
    ("src/bin/main.rs", "Added", "TreeIndex", "rs", None, None),
    ("notes.txt", "Modified", "IndexWorktree", "txt", 20, 1700000300),
    ("old.md", "Removed", "TreeIndex", "md", None, None),
    ("Makefile", "Modified", "IndexWorktree", "", 100, 1700000400),
    ("docs/guide.md", "Modified", "IndexWorktree", "md", 1234, 1700000500),
    ("LICENSE", "Modified", "IndexWorktree", None, 1000, 1700000600),
]

EXAMPLE_QUERY = """
    SELECT
        path,
        status,
        item_type,
        extension,
        size,
        last_modification_time
    FROM git_status
    WHERE
        status IN ('Modified', 'Added')
        AND extension IN ('rs', 'toml', 'md', 'sh')
    ORDER BY path
"""


def make_git_status_table(rows=GIT_STATUS_ROWS) -> pa.Table:
    columns = list(zip(*rows)) if rows else [[] for _ in GIT_STATUS_SCHEMA]
    data = {field.name: list(values) for field, values in zip(GIT_STATUS_SCHEMA, columns)}
    return pa.Table.from_pydict(data, schema=GIT_STATUS_SCHEMA)


@pytest.fixture
def git_status():
    return make_git_status_table()


@pytest.fixture
def git_status_ipc(git_status):
    return to_ipc_bytes(git_status, max_rows=4)
