"""Per-user locations and environment-derived settings.

* Cache and data directories follow the XDG Base Directory layout on
  Linux/BSD and live under ``~/.notion-cli/`` elsewhere.
* :func:`atomic_write` replaces a file in one rename so a concurrent
  ``notion-cli list`` never observes a half-written workspace snapshot.
* :func:`resolve_token` and :func:`verbose_from_env` read the process
  environment; cache TTLs and capacity are parsed by
  :meth:`~notioncli.models.CachePolicy.from_env`.
"""

from __future__ import annotations

import contextlib
import os
import platform
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

from notioncli.exceptions import ConfigError

_APP_NAME = "notion-cli"
_TOKEN_ENV_VAR = "NOTION_TOKEN"
_VERBOSE_ENV_VARS = ("NOTION_CLI_VERBOSE", "NOTION_CLI_DEBUG", "DEBUG")

# kind -> (XDG variable, default under $HOME, fallback under ~/.notion-cli)
_USER_DIRS: dict[str, tuple[str, tuple[str, ...], str]] = {
    "cache": ("XDG_CACHE_HOME", (".cache",), "cache"),
    "data": ("XDG_DATA_HOME", (".local", "share"), "logs"),
}


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _user_dir(kind: str) -> Path:
    env_var, home_segments, fallback = _USER_DIRS[kind]
    if _is_xdg_platform():
        root = os.environ.get(env_var) or Path.home().joinpath(*home_segments)
        path = Path(root) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / fallback
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if needed.

    Holds ``databases.json`` and the ``responses/`` disk tier.  Everything
    in it is disposable; ``notion-cli sync`` rebuilds the snapshot.

    ``$XDG_CACHE_HOME/notion-cli`` (default ``~/.cache/notion-cli``) on
    Linux/BSD, ``~/.notion-cli/cache`` on macOS and Windows.
    """
    return _user_dir("cache")


def get_data_dir() -> Path:
    """Return the data directory used for crash logs, creating it if needed.

    ``$XDG_DATA_HOME/notion-cli`` (default ``~/.local/share/notion-cli``)
    on Linux/BSD, ``~/.notion-cli/logs`` on macOS and Windows.
    """
    return _user_dir("data")


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* in a single rename.

    The temporary file lives next to *path* so ``os.replace`` stays on one
    filesystem.  If anything fails before the rename, the temporary file is
    removed and *path* keeps its previous contents.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


# --- Environment ---


def resolve_token(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the API integration token from ``NOTION_TOKEN``.

    Raises:
        ConfigError: If the variable is unset or empty.
    """
    env = os.environ if environ is None else environ
    token = env.get(_TOKEN_ENV_VAR, "").strip()
    if not token:
        raise ConfigError(
            f"Environment variable '{_TOKEN_ENV_VAR}' is not set",
            suggestions=[
                f"export {_TOKEN_ENV_VAR}=secret_...",
                "Create an integration token at https://www.notion.so/my-integrations",
            ],
        )
    return token


def verbose_from_env(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Return True when ``NOTION_CLI_VERBOSE``, ``NOTION_CLI_DEBUG`` or ``DEBUG`` is ``true``."""
    env = os.environ if environ is None else environ
    return any(env.get(name, "").lower() == "true" for name in _VERBOSE_ENV_VARS)
