# maintainer_api/services/file_service.py
"""
File Service - reads and overwrites the JSON data files.

Path safety lives here:
- ``validate_base_paths`` is the fail-fast startup check
- ``contains`` is the per-request containment check, applied to every path
  built from caller input before the filesystem is touched
"""

import asyncio
import contextlib
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Union

from maintainer_api.core.exceptions import (
    ConfigurationError,
    InvalidLocaleCode,
    PathTraversalAttempt,
)
from maintainer_api.core.logging_config import get_logger

logger = get_logger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def _normalize(path: PathLike) -> str:
    # Absolute with ".." collapsed; symlinks are not followed
    return os.path.normpath(os.path.abspath(os.fspath(path)))


def contains(candidate: PathLike, root: PathLike) -> bool:
    """
    True if ``candidate`` resolves to ``root`` or to something inside it.

    Both paths are normalized first, and the prefix check requires a path
    separator after the root, so ``/data/localesExtra`` is not inside
    ``/data/locales``.
    """
    resolved_candidate = _normalize(candidate)
    resolved_root = _normalize(root)

    if resolved_candidate == resolved_root:
        return True

    prefix = resolved_root if resolved_root.endswith(os.sep) else resolved_root + os.sep
    return resolved_candidate.startswith(prefix)


def _check_access(path: Path, label: str, expect_dir: bool) -> None:
    if not path.exists():
        raise ConfigurationError(f"{label} does not exist: {path}", component="paths")
    if expect_dir and not path.is_dir():
        raise ConfigurationError(f"{label} is not a directory: {path}", component="paths")
    if not expect_dir and not path.is_file():
        raise ConfigurationError(f"{label} is not a file: {path}", component="paths")
    if not os.access(path, os.R_OK | os.W_OK):
        raise ConfigurationError(f"{label} is not readable and writable: {path}", component="paths")


def validate_base_paths(core_path: PathLike, colors_path: PathLike, locales_path: PathLike) -> Path:
    """
    Fail-fast check of the data root before the server starts.

    Raises:
        ConfigurationError: if any path is missing or not read/write accessible
    """
    logger.info("validating_base_paths")

    root = Path(_normalize(core_path))
    _check_access(root, "Core path", expect_dir=True)

    colors = Path(_normalize(colors_path))
    if not contains(colors, root):
        raise ConfigurationError(f"Colors file is outside the core path: {colors}", component="paths")
    _check_access(colors, "Colors file", expect_dir=False)
    logger.info("colors_file_ok", path=str(colors))

    locales = Path(_normalize(locales_path))
    if not contains(locales, root):
        raise ConfigurationError(f"Locales directory is outside the core path: {locales}", component="paths")
    _check_access(locales, "Locales directory", expect_dir=True)
    logger.info("locales_directory_ok", path=str(locales))

    logger.info("path_validation_passed", core_path=str(root))
    return root


def _read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_json(path: Path, data: Any) -> None:
    """Write to a sibling temp file, then swap it in; readers never see a partial file"""
    formatted = json.dumps(data, indent=2, ensure_ascii=False)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(formatted + "\n")
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


class FileService:
    """Async JSON file access confined to the configured data directories"""

    def __init__(self, colors_path: PathLike, locales_path: PathLike, locale_codes: Iterable[str]):
        self.colors_path = Path(_normalize(colors_path))
        self.locales_path = Path(_normalize(locales_path))
        self.locale_codes = tuple(locale_codes)

    def locale_path(self, code: str, log=None) -> Path:
        """
        Build the file path for a locale code.

        The allow-list and the containment check both run, in that order.
        """
        if code not in self.locale_codes:
            raise InvalidLocaleCode(details={"locale": code[:16]})

        candidate = self.locales_path / f"{code}.json"
        if not contains(candidate, self.locales_path):
            (log or logger).warning(
                "path_traversal_attempt",
                candidate=_normalize(candidate),
                root=str(self.locales_path),
            )
            raise PathTraversalAttempt(_normalize(candidate), str(self.locales_path))
        return candidate

    async def read_colors(self) -> Any:
        return await asyncio.to_thread(_read_json, self.colors_path)

    async def write_colors(self, data: Any) -> None:
        await asyncio.to_thread(_write_json, self.colors_path, data)

    async def read_locale(self, code: str, log=None) -> Any:
        path = self.locale_path(code, log)
        return await asyncio.to_thread(_read_json, path)

    async def write_locale(self, code: str, data: Any, log=None) -> None:
        path = self.locale_path(code, log)
        await asyncio.to_thread(_write_json, path, data)

    async def item_id_exists(self, item_id: int) -> bool:
        dyes = await self.read_colors()
        return any(isinstance(dye, dict) and dye.get("itemID") == item_id for dye in dyes)

    async def read_locale_labels(self, log=None) -> Dict[str, str]:
        """The ``labels.dye`` string of every supported locale"""
        labels = {}
        for code in self.locale_codes:
            data = await self.read_locale(code, log)
            labels[code] = data["labels"]["dye"]
        return labels
