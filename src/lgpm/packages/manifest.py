"""Installed module manifests.

``<target_dir>/<module_name>/manifest.json`` is the only record of what is
installed and at which version. Nothing here caches; every call reads disk.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"


def read_manifest(module_dir: Path) -> dict[str, Any] | None:
    """Load ``manifest.json`` from a module directory, or None."""
    path = Path(module_dir) / MANIFEST_FILENAME
    if not path.is_file():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Unreadable manifest {path}: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Manifest {path} is not a JSON object")
        return None
    return data


def write_manifest(module_dir: Path, manifest: dict[str, Any]) -> Path:
    """Write ``manifest.json`` into a module directory."""
    path = Path(module_dir) / MANIFEST_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)
    return path


def installed_manifest(target_dir: Path | None, module_name: str) -> dict[str, Any] | None:
    """Manifest of ``module_name`` installed directly under ``target_dir``."""
    if target_dir is None or not module_name:
        return None
    return read_manifest(Path(target_dir) / module_name)


def scan_installed(target_dir: Path | None) -> dict[str, dict[str, Any]]:
    """Map manifest ``name`` -> manifest for every module under ``target_dir``."""
    found: dict[str, dict[str, Any]] = {}
    if target_dir is None:
        return found
    root = Path(target_dir)
    if not root.is_dir():
        return found

    for child in sorted(root.iterdir()):
        if not child.is_dir():
            continue
        manifest = read_manifest(child)
        if manifest is None:
            continue
        name = manifest.get("name")
        if isinstance(name, str) and name and name not in found:
            found[name] = manifest
    return found
