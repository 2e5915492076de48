"""Command line interface for album_uploader."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import httpx
from rich.logging import RichHandler

from . import __version__
from .cli_progress import (
    ConsoleNotificationSink,
    RunProgressDisplay,
    render_configuration_summary,
    render_intake_summary,
    render_outcome,
)
from .errors import UploaderError
from .models import UploadConfig
from .orchestrator import UploadOrchestrator
from .orchestrator.file_collector import FileCollector
from .use_cases.deduplication import DEDUP_POLICIES

# env var -> (UploadConfig field, parser)
_CONFIG_ENV = {
    "ALBUM_MAX_IMAGE_BYTES": ("max_image_bytes", int),
    "ALBUM_MAX_VIDEO_BYTES": ("max_video_bytes", int),
    "ALBUM_MAX_CANDIDATES": ("max_candidates_per_session", int),
    "ALBUM_DEDUP_POLICY": ("dedup_policy", str),
    "ALBUM_COMMIT_TIMEOUT": ("commit_timeout", float),
}


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

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

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


def _config_from_env(environ: Mapping[str, str], **overrides) -> UploadConfig:
    """Build UploadConfig from ALBUM_* variables; explicit overrides win."""
    values: Dict[str, object] = {}
    for env_name, (field_name, parse) in _CONFIG_ENV.items():
        raw = environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            values[field_name] = parse(raw.strip())
        except ValueError as exc:
            raise CLIError(f"invalid value for {env_name}: {raw!r}") from exc

    values.update({k: v for k, v in overrides.items() if v is not None})

    policy = values.get("dedup_policy")
    if policy is not None and policy not in DEDUP_POLICIES:
        raise CLIError(
            f"unknown dedup policy {policy!r} (expected one of: {', '.join(sorted(DEDUP_POLICIES))})"
        )
    return dataclasses.replace(UploadConfig(), **values)


async def _run_upload(
    sources: List[Path],
    collection: str,
    api_url: str,
    token: Optional[str],
    config: UploadConfig,
    check_permissions: bool,
) -> int:
    try:
        media = FileCollector.collect(sources)
    except OSError as exc:
        raise CLIError(str(exc)) from exc
    if not media:
        raise CLIError("no media files found in the given sources")

    async with UploadOrchestrator(
        api_url,
        config=config,
        token=token,
        notifier=ConsoleNotificationSink(),
    ) as uploader:
        if check_permissions:
            guard = uploader.permission_guard
            if guard is not None and not await guard.can_upload(collection):
                raise CLIError(f"you do not have permission to upload to {collection}")

        with uploader.session(collection) as session:
            report = uploader.intake(session, media)
            render_intake_summary(report, session.snapshot())
            if not session.transferable():
                raise CLIError("nothing to upload: every file was rejected or skipped")

            display = RunProgressDisplay(session.snapshot())
            session.events.on("transition", display.on_transition)
            display.start()
            try:
                outcome = await uploader.commit(session)
            finally:
                display.stop()

            render_outcome(outcome, session.snapshot())
            return 0 if outcome.all_success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="album-up",
        description="Upload photos and videos into a shared album.",
    )
    parser.add_argument("sources", nargs="*", type=Path, help="Files or folders to upload")
    parser.add_argument(
        "-c",
        "--collection",
        default=None,
        help="Destination album id (default from ALBUM_COLLECTION)",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Album API URL (default from ALBUM_API_URL)",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="API bearer token (default from ALBUM_API_TOKEN)",
    )
    parser.add_argument(
        "--dedup-policy",
        choices=sorted(DEDUP_POLICIES),
        default=None,
        help="Duplicate detection rule (default: name_and_size)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-file transfer timeout in seconds (default: none)",
    )
    parser.add_argument(
        "--skip-permission-check",
        action="store_true",
        help="Do not ask the API whether uploads to the album are allowed",
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
        version=f"album-up {__version__}",
    )
    return parser


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

    if not args.sources:
        parser.print_help()
        return 0

    sources = [Path(s).expanduser() for s in args.sources]
    missing = [s for s in sources if not s.exists()]
    if missing:
        print(f"ERROR: source does not exist: {missing[0]}", file=sys.stderr)
        return 1

    api_url = args.api_url or os.getenv("ALBUM_API_URL")
    collection = args.collection or os.getenv("ALBUM_COLLECTION")
    token = args.token or os.getenv("ALBUM_API_TOKEN")
    if not api_url:
        print("ERROR: ALBUM_API_URL environment variable is not set (or pass --api-url)", file=sys.stderr)
        return 1
    if not collection:
        print("ERROR: no destination album (pass --collection or set ALBUM_COLLECTION)", file=sys.stderr)
        return 1

    try:
        config = _config_from_env(
            os.environ,
            dedup_policy=args.dedup_policy,
            commit_timeout=args.timeout,
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_configuration_summary(
        {
            "Sources": ", ".join(str(s) for s in sources),
            "Album": collection,
            "Album API": api_url,
            "Token": "set" if token else "-",
            "Max Image": f"{config.max_image_bytes // (1024 * 1024)} MB",
            "Max Video": f"{config.max_video_bytes // (1024 * 1024)} MB",
            "Max Files": config.max_candidates_per_session,
            "Dedup Policy": config.dedup_policy,
            "Timeout": f"{config.commit_timeout}s" if config.commit_timeout else "-",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(
            _run_upload(
                sources=sources,
                collection=collection,
                api_url=api_url,
                token=token,
                config=config,
                check_permissions=not args.skip_permission_check,
            )
        )
    except (CLIError, UploaderError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except httpx.HTTPError as exc:
        print(f"ERROR: cannot reach album API: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
