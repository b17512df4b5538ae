"""Archive capability and the default LGX reader.

The installer only talks to archives through the narrow ``ArchiveReader``
protocol; all variant selection policy lives in the installer.

LGX layout (gzip tarball):

    manifest.json
    variants/<variant>/<files...>
"""

from __future__ import annotations

import json
import logging
import tarfile
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Protocol

from lgpm.errors import ArchiveError

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".lgx"
MANIFEST_NAME = "manifest.json"
VARIANTS_DIR = "variants"


class ArchiveReader(Protocol):
    """What the installer needs from an opened archive."""

    @property
    def name(self) -> str | None: ...

    @property
    def version(self) -> str | None: ...

    @property
    def description(self) -> str | None: ...

    def list_variants(self) -> set[str]: ...

    def has_variant(self, variant: str) -> bool: ...

    def extract(self, variant: str, dest_dir: Path) -> Path: ...

    def manifest_json(self) -> str | None: ...

    def close(self) -> None: ...

    def __enter__(self) -> "ArchiveReader": ...

    def __exit__(self, *exc: object) -> None: ...


ArchiveOpener = Callable[[Path], ArchiveReader]


def _normalize(member_name: str) -> str:
    name = member_name.replace("\\", "/")
    while name.startswith("./"):
        name = name[2:]
    return name


class LgxArchive:
    """Read-only view over an ``.lgx`` package file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        try:
            self._tar = tarfile.open(self.path, "r:gz")
        except (tarfile.TarError, OSError, EOFError) as e:
            raise ArchiveError(f"Failed to load LGX package {self.path}: {e}") from e
        try:
            members = self._tar.getmembers()
        except (tarfile.TarError, OSError, EOFError) as e:
            self._tar.close()
            raise ArchiveError(f"Failed to load LGX package {self.path}: {e}") from e

        self._members = {_normalize(m.name): m for m in members}
        self._manifest_text: str | None = None
        self._manifest: dict[str, Any] = {}
        self._load_manifest()

    def _load_manifest(self) -> None:
        member = self._members.get(MANIFEST_NAME)
        if member is None or not member.isfile():
            return
        handle = self._tar.extractfile(member)
        if handle is None:
            return
        try:
            text = handle.read().decode("utf-8")
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Invalid manifest in {self.path.name}: {e}")
            return
        if not isinstance(data, dict):
            logger.warning(f"Manifest in {self.path.name} is not a JSON object")
            return
        self._manifest_text = text
        self._manifest = data

    def _manifest_str(self, key: str) -> str | None:
        value = self._manifest.get(key)
        return str(value) if value is not None else None

    @property
    def name(self) -> str | None:
        return self._manifest_str("name")

    @property
    def version(self) -> str | None:
        return self._manifest_str("version")

    @property
    def description(self) -> str | None:
        return self._manifest_str("description")

    def list_variants(self) -> set[str]:
        variants = set()
        for name in self._members:
            parts = PurePosixPath(name).parts
            if len(parts) >= 2 and parts[0] == VARIANTS_DIR:
                variants.add(parts[1])
        return variants

    def has_variant(self, variant: str) -> bool:
        return variant in self.list_variants()

    def extract(self, variant: str, dest_dir: Path) -> Path:
        """Extract one variant into ``dest_dir/<variant>/``.

        Raises:
            ArchiveError: If the variant is absent or a member path escapes
                the destination
        """
        if not self.has_variant(variant):
            raise ArchiveError(f"Variant not found in package: {variant}")

        target_root = Path(dest_dir) / variant
        target_root.mkdir(parents=True, exist_ok=True)
        prefix = (VARIANTS_DIR, variant)

        for name, member in self._members.items():
            parts = PurePosixPath(name).parts
            if parts[:2] != prefix or len(parts) == 2:
                continue
            relative = PurePosixPath(*parts[2:])
            if relative.is_absolute() or ".." in relative.parts:
                raise ArchiveError(f"Unsafe member path in package: {name}")

            target = target_root.joinpath(*relative.parts)
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
            elif member.isfile():
                target.parent.mkdir(parents=True, exist_ok=True)
                handle = self._tar.extractfile(member)
                if handle is None:
                    raise ArchiveError(f"Cannot read member: {name}")
                with handle, open(target, "wb") as out:
                    out.write(handle.read())
                if member.mode & 0o111:
                    target.chmod(0o755)
            else:
                logger.debug(f"Skipping non-regular member: {name}")

        return target_root

    def manifest_json(self) -> str | None:
        return self._manifest_text

    def close(self) -> None:
        self._tar.close()

    def __enter__(self) -> "LgxArchive":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def open_archive(path: Path) -> LgxArchive:
    """Default archive opener."""
    return LgxArchive(path)
