import io
import json

import pyarrow as pa
import pytest

from conftest import EXAMPLE_QUERY
from stream2df.cli import main


def run(argv, stdin: bytes):
    stdout = io.BytesIO()
    code = main(argv, stdin=io.BytesIO(stdin), stdout=stdout)
    return code, stdout.getvalue()


def test_example_query(git_status_ipc):
    code, out = run(
        ["--max-rows", "2", "--tabname", "git_status", "--sql", EXAMPLE_QUERY],
        git_status_ipc,
    )
    assert code == 0
    reader = pa.ipc.open_stream(out)
    batches = list(reader)
    assert [b.num_rows for b in batches] == [2, 2, 1]
    table = pa.Table.from_batches(batches)
    assert table.column("path").to_pylist() == [
        "Cargo.toml",
        "README.md",
        "docs/guide.md",
        "src/bin/main.rs",
        "src/lib.rs",
    ]
    assert table.schema.field("status").type == pa.dictionary(pa.int32(), pa.string())


def test_default_table_name(git_status_ipc):
    code, out = run(["--sql", "SELECT path FROM tab WHERE size > 1000"], git_status_ipc)
    assert code == 0
    table = pa.ipc.open_stream(out).read_all()
    assert table.column("path").to_pylist() == ["src/lib.rs", "docs/guide.md"]


def test_empty_result_is_a_valid_stream(git_status_ipc):
    code, out = run(["--sql", "SELECT path FROM tab WHERE FALSE"], git_status_ipc)
    assert code == 0
    table = pa.ipc.open_stream(out).read_all()
    assert table.num_rows == 0
    assert table.column_names == ["path"]


def test_empty_input():
    code, out = run(["--sql", "SELECT * FROM tab"], b"")
    assert code == 1
    assert out == b""


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT FROM tab",
        "SELECT path FROM git_status",
        "SELECT nope FROM tab",
    ],
)
def test_query_errors(git_status_ipc, sql):
    code, out = run(["--sql", sql], git_status_ipc)
    assert code == 1
    assert out == b""


def test_sql_file_input_and_output(git_status_ipc, tmp_path):
    sql_file = tmp_path / "query.sql"
    sql_file.write_text("SELECT DISTINCT status FROM tab ORDER BY status DESC")
    source = tmp_path / "in.arrows"
    source.write_bytes(git_status_ipc)
    target = tmp_path / "out.arrows"
    code, out = run(
        ["--sql-file", str(sql_file), "-i", str(source), "-o", str(target)], b""
    )
    assert code == 0
    assert out == b""
    table = pa.ipc.open_stream(target.read_bytes()).read_all()
    assert table.column("status").to_pylist() == [
        "Untracked",
        "Removed",
        "Modified",
        "Added",
    ]


def test_jsonl_output(git_status_ipc):
    code, out = run(
        [
            "--output-format",
            "jsonl",
            "--sql",
            "SELECT path, size FROM tab WHERE extension = 'toml'",
        ],
        git_status_ipc,
    )
    assert code == 0
    assert [json.loads(line) for line in out.splitlines()] == [
        {"path": "Cargo.toml", "size": 500}
    ]


def test_config_file(git_status_ipc, tmp_path):
    config = tmp_path / "stream2df.yaml"
    config.write_text(
        "stream2df:\n"
        "  tabname: git_status\n"
        "  max-rows: 3\n"
        "  console-verbosity: error\n"
    )
    code, out = run(
        ["-c", str(config), "--sql", "SELECT path FROM git_status"], git_status_ipc
    )
    assert code == 0
    assert [b.num_rows for b in pa.ipc.open_stream(out)] == [3, 3, 3, 1]


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["--sql", "SELECT 1 FROM tab", "--sql-file", "q.sql"],
        ["--sql", "SELECT * FROM tab", "--max-rows", "0"],
        ["--sql", "SELECT * FROM tab", "--max-rows", "many"],
        ["--sql", "SELECT * FROM tab", "--output-format", "csv"],
    ],
)
def test_usage_errors(argv):
    with pytest.raises(SystemExit) as e:
        main(argv, stdin=io.BytesIO(), stdout=io.BytesIO())
    assert e.value.code == 2


@pytest.mark.parametrize("max_rows", ["0", "-5", "many"])
def test_invalid_max_rows_in_config_file(git_status_ipc, tmp_path, max_rows):
    config = tmp_path / "stream2df.yaml"
    config.write_text(f"stream2df:\n  max-rows: {max_rows}\n")
    with pytest.raises(SystemExit) as e:
        run(["-c", str(config), "--sql", "SELECT path FROM tab"], git_status_ipc)
    assert e.value.code == 2


class ClosedPipe(io.RawIOBase):
    def writable(self):
        return True

    def write(self, data):
        raise BrokenPipeError(32, "Broken pipe")


@pytest.mark.parametrize("output_format", ["arrow", "jsonl"])
def test_broken_pipe(git_status_ipc, output_format):
    code = main(
        ["--output-format", output_format, "--sql", "SELECT path FROM tab"],
        stdin=io.BytesIO(git_status_ipc),
        stdout=ClosedPipe(),
    )
    assert code == 1
