"""Resolution of publish settings from CLI values and the environment."""
from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Optional

import httpx

from .models import DEFAULT_MIRROR_PATH, DEFAULT_PUBLISHER_THREADS, Credentials, PublishConfig

ENV_ROOT_URL = "TARGET_ROOT_URL"
ENV_USER = "TARGET_USER"
ENV_PASSWORD = "TARGET_PASSWORD"
ENV_MIRROR_PATH = "MIRROR_PATH"
ENV_PUBLISHER_THREADS = "TARGET_PUBLISHER_THREADS"


class ConfigError(RuntimeError):
    """Raised when publish settings are missing or invalid."""


def _validate_root_url(value: str) -> str:
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise ConfigError(f"invalid target root URL {value!r}: {exc}") from exc
    if url.scheme not in {"http", "https"} or not url.host:
        raise ConfigError(f"target root URL must be an absolute http(s) URL: {value!r}")
    return value


def _parse_threads(value) -> int:
    try:
        threads = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"publisher threads must be an integer, got {value!r}") from exc
    if threads < 1:
        raise ConfigError(f"publisher threads must be at least 1, got {threads}")
    return threads


def load_config(
    root_url: Optional[str] = None,
    mirror_path: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
    threads: Optional[int] = None,
    env: Optional[Mapping[str, str]] = None,
) -> PublishConfig:
    """
    Build a PublishConfig. Explicit values win over the environment,
    the environment wins over defaults.

    Raises:
        ConfigError: If the root URL is missing or malformed, or the thread
            count is not a positive integer.
    """
    env = os.environ if env is None else env

    root_url = root_url or env.get(ENV_ROOT_URL)
    if not root_url:
        raise ConfigError(f"target root URL is not set (use --root-url or {ENV_ROOT_URL})")

    threads_value = threads if threads is not None else env.get(ENV_PUBLISHER_THREADS)

    return PublishConfig(
        root_url=_validate_root_url(root_url.strip()),
        mirror_path=mirror_path or env.get(ENV_MIRROR_PATH) or DEFAULT_MIRROR_PATH,
        credentials=Credentials.from_optional(
            user or env.get(ENV_USER),
            password or env.get(ENV_PASSWORD),
        ),
        publisher_threads=(
            DEFAULT_PUBLISHER_THREADS if threads_value in (None, "") else _parse_threads(threads_value)
        ),
    )


def read_env_file(path: Path) -> Dict[str, str]:
    """
    Parse a ``.env`` file of ``KEY=value`` lines.

    Values follow shell quoting rules, so ``KEY='a # b'`` keeps the hash
    while an unquoted ``# ...`` tail is a comment. A leading ``export`` is
    accepted. Lines without ``=`` are ignored.

    Raises:
        ConfigError: If the file is missing or a line has unbalanced quotes.
    """
    if not path.is_file():
        raise ConfigError(f"env file not found: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"could not read env file {path}: {exc}") from exc

    values: Dict[str, str] = {}
    for lineno, line in enumerate(content.splitlines(), 1):
        try:
            words = shlex.split(line, comments=True)
        except ValueError as exc:
            raise ConfigError(f"{path}:{lineno}: {exc}") from exc
        if words[:1] == ["export"]:
            words = words[1:]
        if len(words) != 1 or "=" not in words[0]:
            continue
        key, value = words[0].split("=", 1)
        if key:
            values[key] = value
    return values


def apply_env(
    values: Mapping[str, str],
    override: bool = False,
    environ: Optional[MutableMapping[str, str]] = None,
) -> None:
    """Copy ``values`` into the environment; existing variables win unless ``override``."""
    environ = os.environ if environ is None else environ
    for key, value in values.items():
        if override or key not in environ:
            environ[key] = value
