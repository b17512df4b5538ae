"""Remote package catalog and reconciliation against installed modules.

The catalog is a JSON array published as ``list.json`` next to the package
archives:

    [
      {
        "name": "waku_module",
        "moduleName": "waku_module",
        "type": "core",
        "category": "network",
        "author": "...",
        "description": "...",
        "dependencies": ["storage_module"],
        "package": "waku_module.lgx"
      }
    ]

Installed status is always recomputed from on-disk manifests.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from lgpm.errors import CatalogUnavailable, DownloadFailed, FetchError
from lgpm.packages.fetch import Fetcher
from lgpm.packages.manifest import scan_installed

logger = logging.getLogger(__name__)

CATALOG_FILENAME = "list.json"
UI_TYPE = "ui"


@dataclass(frozen=True)
class PackageDescriptor:
    """A single catalog entry.

    Required fields:
        name: Unique catalog key

    Optional fields:
        module_name: On-disk module identifier (defaults to name)
        type: Category tag; "ui" marks a non-core package
        category, author, description: Display metadata
        dependencies: Names of packages that must be installed first
        archive_file: Remote archive filename
    """

    name: str
    module_name: str = ""
    type: str = ""
    category: str = ""
    author: str = ""
    description: str = ""
    dependencies: tuple[str, ...] = ()
    archive_file: str = ""

    @property
    def is_core(self) -> bool:
        return self.type != UI_TYPE

    @property
    def installed_name(self) -> str:
        return self.module_name or self.name

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PackageDescriptor":
        """Create from a catalog JSON object."""
        deps = data.get("dependencies") or []
        if not isinstance(deps, list):
            deps = []
        return cls(
            name=str(data.get("name", "")),
            module_name=str(data.get("moduleName", "") or ""),
            type=str(data.get("type", "") or ""),
            category=str(data.get("category", "") or ""),
            author=str(data.get("author", "") or ""),
            description=str(data.get("description", "") or ""),
            dependencies=tuple(str(d) for d in deps if d),
            archive_file=str(data.get("package", "") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "moduleName": self.module_name,
            "type": self.type,
            "category": self.category,
            "author": self.author,
            "description": self.description,
            "dependencies": list(self.dependencies),
            "package": self.archive_file,
        }


@dataclass
class CatalogEntry:
    """Catalog descriptor annotated with its installed status."""

    package: PackageDescriptor
    installed: bool = False
    installed_version: str | None = None

    @property
    def name(self) -> str:
        return self.package.name

    def to_dict(self) -> dict[str, Any]:
        data = self.package.to_dict()
        data["installed"] = self.installed
        if self.installed_version is not None:
            data["installedVersion"] = self.installed_version
        return data


def parse_catalog(data: bytes | str) -> list[PackageDescriptor]:
    """Parse catalog JSON.

    Raises:
        CatalogUnavailable: If the document is not a JSON array
    """
    try:
        doc = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CatalogUnavailable(f"Failed to parse package list JSON: {e}") from e

    if not isinstance(doc, list):
        raise CatalogUnavailable("Package list JSON is not an array")

    packages = []
    for item in doc:
        if not isinstance(item, dict) or not item.get("name"):
            logger.warning(f"Skipping malformed catalog entry: {item!r:.80}")
            continue
        packages.append(PackageDescriptor.from_dict(item))
    return packages


def find_by_name(
    catalog: Iterable[PackageDescriptor], name: str
) -> PackageDescriptor | None:
    """First exact-name match, or None."""
    for package in catalog:
        if package.name == name:
            return package
    return None


def reconcile_installed(
    catalog: Iterable[PackageDescriptor],
    modules_dir: Path | None,
    plugins_dir: Path | None,
) -> list[CatalogEntry]:
    """Annotate catalog entries with installed status from disk.

    Core packages are looked up under ``modules_dir``, UI packages under
    ``plugins_dir``. A module counts as installed when some immediate
    subdirectory holds a manifest whose ``name`` equals the module name.
    """
    installed_core = scan_installed(modules_dir)
    installed_ui = scan_installed(plugins_dir)

    entries = []
    for package in catalog:
        if not package.archive_file:
            logger.warning(f"Package {package.name} has no package file specified")
            continue
        installed = installed_core if package.is_core else installed_ui
        manifest = installed.get(package.installed_name)
        version = None
        if manifest is not None and manifest.get("version") is not None:
            version = str(manifest["version"])
        entries.append(
            CatalogEntry(
                package=package,
                installed=manifest is not None,
                installed_version=version,
            )
        )

    logger.debug(f"Found {len(entries)} packages")
    return entries


def filter_by_category(
    entries: Iterable[CatalogEntry], category: str | None
) -> list[CatalogEntry]:
    """Entries whose category matches, case-insensitively."""
    if not category:
        return list(entries)
    wanted = category.lower()
    return [e for e in entries if e.package.category.lower() == wanted]


def categories(catalog: Iterable[PackageDescriptor]) -> list[str]:
    """Sorted unique non-empty categories."""
    return sorted({p.category for p in catalog if p.category})


def search(entries: Iterable[CatalogEntry], query: str) -> list[CatalogEntry]:
    """Entries whose name or description contains ``query``."""
    needle = query.lower()
    return [
        e
        for e in entries
        if needle in e.package.name.lower()
        or needle in e.package.description.lower()
    ]


@dataclass
class CatalogClient:
    """Fetches the package list and archives from ``base_url``."""

    fetcher: Fetcher
    base_url: str
    catalog_filename: str = field(default=CATALOG_FILENAME)

    @property
    def catalog_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.catalog_filename}"

    def archive_url(self, archive_file: str) -> str:
        return f"{self.base_url.rstrip('/')}/{archive_file}"

    async def load_catalog(self) -> list[PackageDescriptor]:
        """Fetch and parse the catalog.

        Raises:
            CatalogUnavailable: On any transport, HTTP or parse failure
        """
        logger.debug(f"Fetching package list from: {self.catalog_url}")
        try:
            data = await self.fetcher.fetch(self.catalog_url)
        except FetchError as e:
            raise CatalogUnavailable(f"Failed to fetch package list: {e}") from e

        packages = parse_catalog(data)
        logger.info(f"Fetched {len(packages)} packages from {self.catalog_url}")
        return packages

    async def fetch_catalog(self) -> list[PackageDescriptor]:
        """Fetch the catalog, returning an empty list on any failure."""
        try:
            return await self.load_catalog()
        except CatalogUnavailable as e:
            logger.warning(str(e))
            return []

    async def download(self, archive_file: str, dest_dir: Path) -> Path:
        """Download one archive into ``dest_dir``.

        Raises:
            DownloadFailed: On fetch or write failure
        """
        url = self.archive_url(archive_file)
        destination = Path(dest_dir) / Path(archive_file).name
        logger.debug(f"Downloading file from: {url} to {destination}")

        try:
            data = await self.fetcher.fetch(url)
        except FetchError as e:
            raise DownloadFailed(f"Failed to download {archive_file}: {e}") from e

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as e:
            raise DownloadFailed(
                f"Failed to write {destination}: {e.strerror or e}"
            ) from e

        logger.debug(f"Downloaded file: {destination} ({len(data)} bytes)")
        return destination
