"""Package building blocks: archives, catalog, dependencies and placement.

- version.py: Dotted version comparison
- platform.py: Host variant detection and alias fallback
- archive.py: LGX archive reader (gzip tar with per-variant trees)
- manifest.py: Installed manifest.json read/write/scan
- fetch.py: HTTP fetch capability
- catalog.py: Remote package list, reconciliation with installed modules
- resolver.py: Dependency expansion into install order
- installer.py: One archive -> one installed module directory
"""

from lgpm.packages.archive import LgxArchive, open_archive
from lgpm.packages.catalog import (
    CatalogClient,
    CatalogEntry,
    PackageDescriptor,
    parse_catalog,
    reconcile_installed,
)
from lgpm.packages.fetch import Fetcher, HttpFetcher
from lgpm.packages.installer import (
    ArchiveInstaller,
    InstallResult,
    InstallStatus,
)
from lgpm.packages.platform import PlatformInfo
from lgpm.packages.resolver import DependencyResolver, resolve_dependencies
from lgpm.packages.version import compare_versions, is_newer_or_equal

__all__ = [
    "LgxArchive",
    "open_archive",
    "CatalogClient",
    "CatalogEntry",
    "PackageDescriptor",
    "parse_catalog",
    "reconcile_installed",
    "Fetcher",
    "HttpFetcher",
    "ArchiveInstaller",
    "InstallResult",
    "InstallStatus",
    "PlatformInfo",
    "DependencyResolver",
    "resolve_dependencies",
    "compare_versions",
    "is_newer_or_equal",
]
