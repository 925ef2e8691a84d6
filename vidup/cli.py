"""Command line interface for vidup."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import (
    BatchUploadProgressDisplay,
    human_size,
    render_configuration_summary,
    render_history,
)
from .errors import VidupError
from .models import MB, PLATFORMS, TaskStatus, UploadConfig, UploadTask
from .orchestrator import BatchCoordinator, UploadOrchestrator
from .services.api_client import HTTPChunkTransport
from .services.file_source import LocalFile
from .services.history import JsonHistoryStore, filter_by_date, to_tsv
from .use_cases.record_history import RecordHistoryUseCase


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is
    provided. Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level).upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from exc


def _build_config(args: argparse.Namespace) -> UploadConfig:
    config = UploadConfig.from_env()
    overrides = {}
    if getattr(args, "api_url", None):
        overrides["api_url"] = args.api_url.rstrip("/")
    if getattr(args, "chunk_size_mb", None):
        overrides["chunk_size"] = args.chunk_size_mb * MB
    if getattr(args, "parallel", None):
        overrides["parallel_uploads"] = args.parallel
    if getattr(args, "history_file", None):
        overrides["history_path"] = Path(args.history_file).expanduser()
    return replace(config, **overrides) if overrides else config


def _build_tasks(
    files: Sequence[Path],
    name: Optional[str],
    platform: str,
    chunk_size: int,
) -> List[UploadTask]:
    if name and len(files) > 1:
        raise CLIError("--name can only be used with a single file")

    tasks = []
    for path in files:
        path = Path(path).expanduser()
        if not path.is_file():
            raise CLIError(f"not a file: {path}")
        tasks.append(
            UploadTask(
                file_ref=LocalFile(path),
                display_name=name or "",
                platform=platform,
                chunk_size=chunk_size,
            )
        )
    return tasks


async def _run_upload(
    tasks: List[UploadTask],
    config: UploadConfig,
    record_history: bool,
) -> int:
    if not config.api_url:
        raise CLIError("API URL is not set (use --api-url or VIDUP_API_URL)")

    orchestrator = UploadOrchestrator()
    display = BatchUploadProgressDisplay()
    recorder = RecordHistoryUseCase(JsonHistoryStore(config.history_path))

    async def save_history(task: UploadTask) -> None:
        outcome = await recorder.execute(task)
        if outcome.warning:
            display.on_warning(outcome.warning)

    async with HTTPChunkTransport(config.api_url, config.user_id, config.timeout) as transport:
        coordinator = BatchCoordinator(orchestrator, transport, tasks, config.parallel_uploads)
        orchestrator.on_progress(display.on_progress)
        coordinator.on_task_start(display.on_task_start)
        coordinator.on_task_finished(display.on_task_finished)
        if record_history:
            coordinator.on_task_finished(save_history)

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, coordinator.cancel)
            handles_sigint = True
        except (NotImplementedError, RuntimeError):
            # Platform without loop signal handlers; KeyboardInterrupt is handled in run_cli
            handles_sigint = False

        try:
            await coordinator.run()
        finally:
            if handles_sigint:
                loop.remove_signal_handler(signal.SIGINT)
            counts = coordinator.counts
            display.on_finish(counts.succeeded, counts.failed, counts.cancelled, counts.pending)

    if any(t.status is TaskStatus.CANCELLED for t in coordinator.tasks):
        return 130
    return 0 if counts.failed == 0 and counts.pending == 0 else 1


async def _run_history(args: argparse.Namespace, config: UploadConfig) -> int:
    store = JsonHistoryStore(config.history_path)

    if args.history_command == "list":
        records = filter_by_date(await store.list_all(), args.date)
        render_history(records)
        return 0

    if args.history_command == "remove":
        await store.remove(args.record_id)
        print(f"Removed record {args.record_id}")
        return 0

    if args.history_command == "clear":
        if not args.yes:
            raise CLIError("refusing to clear history without --yes")
        await store.clear()
        print("History cleared")
        return 0

    if args.history_command == "export":
        records = filter_by_date(await store.list_all(), args.date)
        text = to_tsv(records)
        if args.output:
            Path(args.output).write_text(text + "\n", encoding="utf-8")
            print(f"Exported {len(records)} record(s) to {args.output}")
        else:
            print(text)
        return 0

    raise CLIError(f"unknown history command: {args.history_command}")


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--history-file",
        type=Path,
        default=None,
        help="History JSON file (default from VIDUP_HISTORY_FILE or ~/.local/share/vidup/history.json)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vidup",
        description="Upload videos in chunks and keep a local upload history.",
    )
    parser.add_argument("--version", action="version", version="vidup 0.1.0")
    commands = parser.add_subparsers(dest="command")

    upload = commands.add_parser("upload", help="Upload one or more files")
    upload.add_argument("files", nargs="+", type=Path, help="Files to upload, in order")
    upload.add_argument("-n", "--name", default=None, help="Display name (single file only)")
    upload.add_argument(
        "-p",
        "--platform",
        choices=PLATFORMS,
        default="Android",
        help="Target platform tag",
    )
    upload.add_argument("--api-url", default=None, help="Upload API base URL (default from VIDUP_API_URL)")
    upload.add_argument("--chunk-size-mb", type=int, default=None, help="Chunk size in MB (default 5)")
    upload.add_argument("-j", "--parallel", type=int, default=None, help="Chunks in flight per file (default 3)")
    upload.add_argument("--no-history", action="store_true", help="Do not record uploads in history")
    _add_common_options(upload)

    history = commands.add_parser("history", help="Inspect or edit upload history")
    history_commands = history.add_subparsers(dest="history_command", required=True)

    list_cmd = history_commands.add_parser("list", help="List uploads, newest first")
    list_cmd.add_argument("--date", type=_parse_date, default=None, help="Only uploads from this day (YYYY-MM-DD)")
    _add_common_options(list_cmd)

    remove_cmd = history_commands.add_parser("remove", help="Delete one record")
    remove_cmd.add_argument("record_id", type=int)
    _add_common_options(remove_cmd)

    clear_cmd = history_commands.add_parser("clear", help="Delete every record")
    clear_cmd.add_argument("--yes", action="store_true", help="Confirm clearing the history")
    _add_common_options(clear_cmd)

    export_cmd = history_commands.add_parser("export", help="Export uploads as tab-separated text")
    export_cmd.add_argument("--date", type=_parse_date, default=None, help="Only uploads from this day (YYYY-MM-DD)")
    export_cmd.add_argument("-o", "--output", type=Path, default=None, help="Write to this file instead of stdout")
    _add_common_options(export_cmd)

    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    try:
        config = _build_config(args)

        if args.command == "history":
            return asyncio.run(_run_history(args, config))

        if args.parallel is not None and args.parallel < 1:
            raise CLIError("--parallel must be >= 1")
        if args.chunk_size_mb is not None and args.chunk_size_mb < 1:
            raise CLIError("--chunk-size-mb must be >= 1")

        tasks = _build_tasks(args.files, args.name, args.platform, config.chunk_size)
        total_bytes = sum(t.file_size for t in tasks)
        render_configuration_summary(
            {
                "Files": f"{len(tasks)} ({human_size(total_bytes)})",
                "Platform": args.platform,
                "API": config.api_url or "(missing)",
                "Chunk Size": human_size(config.chunk_size),
                "Parallel": config.parallel_uploads,
                "History": "off" if args.no_history else str(config.history_path),
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )
        return asyncio.run(_run_upload(tasks, config, record_history=not args.no_history))
    except (CLIError, VidupError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
