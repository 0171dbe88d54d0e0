"""Command line entry point: run a SQL query over an Arrow IPC stream.

Example:

    git-status2arrow-ipc-stream |
        ipc-stream2df --max-rows 1024 --tabname git_status --sql "
            SELECT path, status FROM git_status
            WHERE status IN ('Modified', 'Added')
            ORDER BY path" |
        arrow-cat
"""

import argparse
import os
import sys
from pathlib import Path
from typing import BinaryIO, Optional, Sequence

from dynaconf import ValidationError

import stream2df.utils.config
import stream2df.utils.logging
from stream2df.errors import Stream2dfError
from stream2df.ipc.convert import write_json_rows
from stream2df.ipc.reader import read_table
from stream2df.ipc.writer import write_table
from stream2df.query.engine import QueryEngine

logger = stream2df.utils.logging.get(__name__)

OUTPUT_FORMATS = ("arrow", "jsonl")


def positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {text!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return value


def _config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ipc-stream2df", add_help=False)
    parser.add_argument("--config", "-c")
    return parser


def build_parser(config: stream2df.utils.config.Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ipc-stream2df",
        description="Read an Arrow IPC stream, run a SQL query over it and "
        "write the result as an Arrow IPC stream.",
    )
    parser.add_argument("--config", "-c", help="path to a configuration file")
    parser.add_argument(
        "--max-rows",
        type=positive_int,
        default=int(config.get("max-rows")),
        help="maximum number of rows per output record batch (default: %(default)s)",
    )
    parser.add_argument(
        "--tabname",
        default=config.get("tabname"),
        help="name of the table holding the input (default: %(default)s)",
    )
    query = parser.add_mutually_exclusive_group(required=True)
    query.add_argument("--sql", help="the query to execute")
    query.add_argument("--sql-file", type=Path, help="read the query from a file")
    parser.add_argument(
        "--input", "-i", type=Path, help="read the stream from a file instead of stdin"
    )
    parser.add_argument(
        "--output", "-o", type=Path, help="write the result to a file instead of stdout"
    )
    parser.add_argument(
        "--output-format",
        choices=OUTPUT_FORMATS,
        default="arrow",
        help="encoding of the result (default: %(default)s)",
    )
    return parser


def run(args: argparse.Namespace, stdin: BinaryIO, stdout: BinaryIO) -> int:
    sql = args.sql if args.sql is not None else args.sql_file.read_text()
    table = read_table(args.input if args.input is not None else stdin)
    engine = QueryEngine()
    engine.register(args.tabname, table)
    result = engine.execute(sql)
    if args.output is not None:
        with args.output.open("wb") as sink:
            return _write(result, sink, args)
    num_rows = _write(result, stdout, args)
    stdout.flush()
    return num_rows


def _write(result, sink: BinaryIO, args: argparse.Namespace) -> int:
    if args.output_format == "jsonl":
        return write_json_rows(result, sink, max_rows=args.max_rows)
    return write_table(result, sink, max_rows=args.max_rows)


def main(
    argv: Optional[Sequence[str]] = None,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
) -> int:
    config_parser = _config_parser()
    known, _ = config_parser.parse_known_args(argv)
    config_files = [known.config] if known.config else None
    try:
        config = stream2df.utils.config.create(config_files)
    except ValidationError as e:
        config_parser.error(f"invalid configuration: {e}")
    if config_files:
        stream2df.utils.logging.reconfigure(config)
    args = build_parser(config).parse_args(argv)
    stdin = stdin if stdin is not None else sys.stdin.buffer
    stdout = stdout if stdout is not None else sys.stdout.buffer
    try:
        num_rows = run(args, stdin, stdout)
    except Stream2dfError as e:
        logger.error(str(e))
        return 1
    except BrokenPipeError:
        logger.debug("downstream closed the pipe")
        if stdout is sys.stdout.buffer:
            # Point stdout at devnull so that the interpreter does not fail
            # again while flushing at exit.
            devnull = os.open(os.devnull, os.O_WRONLY)
            os.dup2(devnull, sys.stdout.fileno())
        return 1
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1
    logger.info(f"wrote {num_rows} rows")
    return 0

