"""Command line interface for mediadrop package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import uvicorn
from rich.logging import RichHandler

from . import __version__
from .backend import create_app_from_env
from .cli_progress import BatchProgressDisplay, render_configuration_summary
from .config import UploadConfig
from .errors import ValidationError
from .models import CandidateFile, MediaKind
from .orchestrator import BatchOrchestrator


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level and not os.getenv("LOG_LEVEL")):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=True,
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


def _collect_candidates(paths: Sequence[Path], max_files: int) -> List[CandidateFile]:
    missing = [str(p) for p in paths if not p.is_file()]
    if missing:
        raise CLIError(f"not a file: {', '.join(missing)}")
    if len(paths) > max_files:
        raise CLIError(f"too many files: limit is {max_files}")
    return [CandidateFile.from_path(p) for p in paths]


async def _run_upload(paths: Sequence[Path], config: UploadConfig) -> int:
    candidates = _collect_candidates(paths, config.max_files)
    display = BatchProgressDisplay()
    rejected: List[ValidationError] = []

    def on_rejected(error: ValidationError) -> None:
        rejected.append(error)
        display.on_rejected(error)

    async with BatchOrchestrator(config) as batch:
        batch.on_file_added(display.on_file_added)
        batch.on_file_changed(display.on_file_changed)
        batch.on_file_removed(display.on_file_removed)
        batch.on_rejected(on_rejected)
        batch.on_batch_progress(display.on_batch_progress)
        batch.on_result(display.on_result)
        batch.on_failure(display.on_failure)

        accepted = await batch.add_files(candidates)
        if not accepted:
            print("ERROR: no acceptable files to upload", file=sys.stderr)
            return 1

        display.start()
        try:
            outcome = await batch.start()
        finally:
            display.stop()

    return 0 if outcome.all_success and not rejected else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediadrop",
        description="Upload images and videos straight to object storage through signed URLs.",
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
    parser.add_argument(
        "--version",
        action="version",
        version=f"mediadrop {__version__}",
    )

    commands = parser.add_subparsers(dest="command")

    upload = commands.add_parser("upload", help="Upload one or more media files")
    upload.add_argument("files", nargs="+", type=Path, help="Image or video files")
    upload.add_argument(
        "-e",
        "--endpoint",
        default=None,
        help="Exchange endpoint URL (default from MEDIADROP_API_URL)",
    )
    upload.add_argument(
        "--csrf-token",
        default=None,
        help="Anti-forgery token sent with every exchange call (default from MEDIADROP_CSRF_TOKEN)",
    )

    serve = commands.add_parser("serve", help="Run the signed-URL exchange backend")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve.add_argument("--port", type=int, default=8000, help="Bind port")
    return parser


def _run_serve(host: str, port: int, log_mode: str) -> int:
    app = create_app_from_env()
    render_configuration_summary(
        {
            "Command": "serve",
            "Listen": f"http://{host}:{port}/api/upload",
            "Bucket": os.getenv("AWS_S3_BUCKET"),
            "Region": os.getenv("AWS_REGION") or "(boto3 default)",
            "Anti-forgery": "on" if os.getenv("MEDIADROP_CSRF_TOKEN") else "off",
            "Logging": log_mode,
        }
    )
    uvicorn.run(app, host=host, port=port, log_level="info" if log_mode != "silent" else "warning")
    return 0


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

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

    if args.command is None:
        parser.print_help()
        return 0

    try:
        if args.command == "serve":
            return _run_serve(args.host, args.port, effective_log_mode)

        config = UploadConfig.from_env(endpoint=args.endpoint, csrf_token=args.csrf_token)
        files = [Path(p).expanduser() for p in args.files]
        render_configuration_summary(
            {
                "Files": len(files),
                "Endpoint": config.endpoint,
                "Anti-forgery": "on" if config.csrf_token else "off",
                "Image Limit": f"{config.limit_mb(MediaKind.IMAGE)}MB",
                "Video Limit": f"{config.limit_mb(MediaKind.VIDEO)}MB",
                "Max Files": config.max_files,
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )
        return asyncio.run(_run_upload(files, config))
    except (CLIError, RuntimeError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
