"""Command line interface for mirror_publisher package."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

from rich.logging import RichHandler

from . import __version__
from .cli_output import mask_secret, render_configuration_summary, render_finish
from .config import ConfigError, apply_env, load_config, read_env_file
from .publisher import PublishEngine


DEFAULT_LOG_DIR = "logs"
RUN_LOG_NAME = "publish.log"
ERROR_LOG_NAME = "publish-errors.log"

_LOG_PATHS: Tuple[Optional[str], Optional[str]] = (None, None)


def _get_log_paths() -> Tuple[Optional[str], Optional[str]]:
    """Return (run log, error log) paths configured by the last _setup_logging call."""
    return _LOG_PATHS


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    The console shows INFO and above unless --debug, --log-level or LOG_LEVEL
    say otherwise; --silent keeps only errors on the console. Independently,
    every record goes to the run log and errors go to the error log, both in
    MIRROR_PUBLISH_LOG_DIR.
    Returns a string describing effective mode.
    """
    global _LOG_PATHS

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    if silent:
        level = logging.ERROR
    elif debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        env_level = os.getenv("LOG_LEVEL")
        level = getattr(logging, (env_level or "INFO").upper(), logging.INFO)

    console_handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    log_dir = Path(os.getenv("MIRROR_PUBLISH_LOG_DIR") or DEFAULT_LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    run_log = log_dir / RUN_LOG_NAME
    error_log = log_dir / ERROR_LOG_NAME
    file_formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"
    )

    run_handler = logging.FileHandler(run_log, encoding="utf-8")
    run_handler.setLevel(logging.DEBUG)
    run_handler.setFormatter(file_formatter)
    root_logger.addHandler(run_handler)

    error_handler = logging.FileHandler(error_log, encoding="utf-8")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(file_formatter)
    root_logger.addHandler(error_handler)

    root_logger.setLevel(logging.DEBUG)
    # httpx logs every request at INFO; the upload client already does
    http_level = logging.DEBUG if debug else logging.WARNING
    logging.getLogger("httpx").setLevel(http_level)
    logging.getLogger("httpcore").setLevel(http_level)

    _LOG_PATHS = (str(run_log), str(error_log))
    return "silent" if silent else logging.getLevelName(level)


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mirror-publish",
        description="Publish a mirrored repository directory to a remote HTTP repository.",
    )
    parser.add_argument(
        "mirror",
        nargs="?",
        default=None,
        help="Mirror directory to publish (default from MIRROR_PATH or ./mirror/)",
    )
    parser.add_argument(
        "-u",
        "--root-url",
        default=None,
        help="Target repository root URL (default from TARGET_ROOT_URL)",
    )
    parser.add_argument("--user", default=None, help="Target repository user (TARGET_USER)")
    parser.add_argument(
        "--password",
        default=None,
        help="Target repository password (TARGET_PASSWORD)",
    )
    parser.add_argument(
        "-t",
        "--threads",
        type=int,
        default=None,
        help="Number of concurrent uploads (default from TARGET_PUBLISHER_THREADS or 10)",
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
        version=f"mirror-publish {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            apply_env(read_env_file(Path(used_env_file)))
        except ConfigError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    try:
        config = load_config(
            root_url=args.root_url,
            mirror_path=str(Path(args.mirror).expanduser()) if args.mirror else None,
            user=args.user,
            password=args.password,
            threads=args.threads,
        )
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    mirror = Path(config.mirror_path)
    if not mirror.is_dir():
        print(f"ERROR: mirror directory does not exist: {mirror}", file=sys.stderr)
        return 1

    credentials = config.credentials
    if not args.silent:
        render_configuration_summary(
            {
                "Mirror": str(mirror),
                "Target": config.root_url,
                "User": credentials.username if credentials else "(anonymous)",
                "Password": mask_secret(credentials.password if credentials else None),
                "Threads": config.publisher_threads,
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        summary = PublishEngine(config).publish()
    except OSError as exc:
        print(f"ERROR: publishing aborted, {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130

    if not args.silent:
        render_finish(summary)
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
