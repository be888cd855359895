"""Utilities for locating runtime data and built-in system assets."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

_ENV_VAR = "CI_RUNBOOKS_DATA_DIR"
_DEFAULT_DIRNAME = ".ci_runbooks"
_PACKAGE_ROOT = Path(__file__).resolve().parents[1]
_SYSTEM_DIR = _PACKAGE_ROOT / "system"


def get_data_dir() -> Path:
    """Return the configured runtime data directory.

    Honors the CI_RUNBOOKS_DATA_DIR environment variable; otherwise defaults
    to ~/.ci_runbooks on the current platform.
    """
    override = os.getenv(_ENV_VAR)
    if override is not None and override.strip():
        return Path(override.strip()).expanduser().resolve()
    return (Path.home() / _DEFAULT_DIRNAME).resolve()


def ensure_data_dir() -> Path:
    """Ensure the data directory exists on disk and return it."""
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    _seed_from_system(data_dir)
    return data_dir


def resolve_data_file(path: str, ensure_parent: bool = False) -> Path:
    """Resolve a configured file path against the data directory.

    Absolute paths are used as-is; relative paths are interpreted relative to
    the runtime data dir.
    """
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = ensure_data_dir() / candidate
    if ensure_parent:
        candidate.parent.mkdir(parents=True, exist_ok=True)
    return candidate


def get_system_dir() -> Path:
    """Return the package's bundled system directory."""
    return _SYSTEM_DIR


def get_system_path(*relative: str) -> Path:
    """Return a path inside the package's system directory."""
    return _SYSTEM_DIR.joinpath(*relative)


def _seed_from_system(target: Path) -> None:
    """Copy the bundled compose definitions into *target* when missing."""
    if target.resolve() == _SYSTEM_DIR.resolve():
        return

    src = _SYSTEM_DIR / "compose"
    dest = target / "compose"
    if not src.exists() or dest.exists():
        return
    try:
        shutil.copytree(src, dest)
    except FileExistsError:
        pass


__all__ = [
    "get_data_dir",
    "ensure_data_dir",
    "resolve_data_file",
    "get_system_dir",
    "get_system_path",
]
