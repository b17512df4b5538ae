"""Error taxonomy for the package manager.

Every error carries a stable ``code`` string. Components raise these
internally; the installer and the install pipeline capture them into
result objects so nothing crosses a batch boundary as an exception.
"""

from __future__ import annotations


class PackageManagerError(Exception):
    """Base class for all package manager failures."""

    code = "error"

    def __init__(self, message: str, package: str | None = None):
        self.package = package
        self.message = message
        full_message = f"[{package}] {message}" if package else message
        super().__init__(full_message)


class InvalidSource(PackageManagerError):
    """Local archive is missing, unreadable, or not an archive."""

    code = "invalid_source"


class UnsupportedPlatform(PackageManagerError):
    """Archive has no variant for this platform."""

    code = "unsupported_platform"

    def __init__(self, variants_tried: list[str], package: str | None = None):
        self.variants_tried = list(variants_tried)
        super().__init__(
            "Package does not contain a variant for this platform "
            f"(tried: {', '.join(self.variants_tried)})",
            package,
        )


class CatalogUnavailable(PackageManagerError):
    """Remote package list could not be fetched or parsed."""

    code = "catalog_unavailable"


class PackageNotFound(PackageManagerError):
    """Requested name is absent from the catalog."""

    code = "package_not_found"


class DownloadFailed(PackageManagerError):
    """Archive download failed or could not be written to disk."""

    code = "download_failed"


class FilesystemError(PackageManagerError):
    """Copy or remove failure while placing module files."""

    code = "filesystem_error"


class ArchiveError(PackageManagerError):
    """Archive could not be opened or a variant could not be extracted."""

    code = "archive_error"


class FetchError(PackageManagerError):
    """Transport or HTTP failure raised by a fetcher."""

    code = "fetch_error"

    def __init__(self, message: str, url: str = "", status: int | None = None):
        self.url = url
        self.status = status
        super().__init__(message)
