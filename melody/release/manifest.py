"""Version field of the project manifest and its lock file.

Both files are JSON records (``package.json`` / ``package-lock.json`` by
default). Only ``version`` is touched; key order and every other field are
preserved. Lock files in the v2/v3 format repeat the root version under
``packages[""]``, which is kept in sync too.

Updating is split in two so dry runs still validate: ``render_version`` reads
and rewrites in memory, ``write_manifest`` persists.
"""

from __future__ import annotations

import json
from pathlib import Path

from melody.core.result import Err, Ok, Result
from melody.core.structured import StrDict, as_str_dict, get_str, get_table
from melody.platform.files import atomic_write_text
from melody.release.errors import ReleaseError


def read_version(path: Path) -> Result[str, ReleaseError]:
    loaded = _load(path)
    if isinstance(loaded, Err):
        return loaded

    value = get_str(loaded.value[0], "version")
    if value is None:
        return Err(
            ReleaseError(
                kind="io",
                message=f"missing version in {path.name}",
                hint=str(path),
            )
        )
    return Ok(value)


def render_version(path: Path, version: str) -> Result[str, ReleaseError]:
    """Return the file content with ``version`` replaced."""
    loaded = _load(path)
    if isinstance(loaded, Err):
        return loaded

    doc, original = loaded.value
    doc["version"] = version
    packages = get_table(doc, "packages")
    if packages is not None:
        root = get_table(packages, "")
        if root is not None and "version" in root:
            root["version"] = version

    newline = "\n" if original.endswith("\n") else ""
    return Ok(json.dumps(doc, indent=2, ensure_ascii=False) + newline)


def write_manifest(path: Path, content: str) -> Result[None, ReleaseError]:
    try:
        atomic_write_text(path, content, encoding="utf-8")
    except OSError as e:
        return Err(
            ReleaseError(
                kind="io",
                message=f"failed to write {path.name}: {e}",
                hint=str(path),
            )
        )
    return Ok(None)


def _load(path: Path) -> Result[tuple[StrDict, str], ReleaseError]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return Err(
            ReleaseError(
                kind="io",
                message=f"failed to read {path.name}: {e}",
                hint=str(path),
            )
        )

    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(
            ReleaseError(
                kind="io",
                message=f"invalid JSON in {path.name}: {e}",
                hint=str(path),
            )
        )

    data = as_str_dict(obj)
    if data is None:
        return Err(
            ReleaseError(
                kind="io",
                message=f"invalid JSON root in {path.name}",
                hint=str(path),
            )
        )
    return Ok((data, text))
