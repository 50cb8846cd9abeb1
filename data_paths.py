"""Helpers for constructing suffixed artifact paths."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from config import ARTIFACTS_PATH

_DATA_SUFFIX = ""


def set_data_suffix(suffix: Optional[str]) -> None:
    global _DATA_SUFFIX
    _DATA_SUFFIX = (suffix or "").strip()


def _apply(stem: str, explicit_suffix: Optional[str]) -> str:
    suffix = (explicit_suffix if explicit_suffix is not None else _DATA_SUFFIX).strip()
    if not suffix:
        return stem
    return f"{stem}_{suffix}"


def artifacts_root(base: Optional[str | Path] = None) -> Path:
    if base is None or not str(base).strip():
        return ARTIFACTS_PATH
    return Path(base)


def artifact_path(
    stem: str,
    ext: str,
    base: Optional[str | Path] = None,
    suffix: Optional[str] = None,
) -> Path:
    return artifacts_root(base) / f"{_apply(stem, suffix)}.{ext.lstrip('.')}"


def find_artifact(
    stem: str,
    extensions: tuple[str, ...],
    base: Optional[str | Path] = None,
    suffix: Optional[str] = None,
) -> Optional[Path]:
    """Return the first existing artifact among ``extensions``, in order."""

    for ext in extensions:
        path = artifact_path(stem, ext, base=base, suffix=suffix)
        if path.exists():
            return path
    return None
