"""Archive installer: one local ``.lgx`` file -> one installed module directory.

Handles:
- Variant selection with alias fallback
- Version skip (never reinstall an equal or older version when asked)
- Manifest persistence, so every installed module has a readable manifest.json
- Core vs UI placement, decided by the manifest's ``type`` field
- Remove-then-copy placement, which makes reinstalls idempotent
- ``ModuleInstalled`` notification for the host once the main file exists

Design principles:
- The staged manifest is authoritative; callers cannot relabel a package
- Only the primary copy is fatal; stale-file removal failures are warnings
- Failures come back as an ``InstallResult``, never as an exception
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath
from typing import Any

from lgpm.errors import (
    ArchiveError,
    FilesystemError,
    InvalidSource,
    PackageManagerError,
    UnsupportedPlatform,
)
from lgpm.events import EventHub, ModuleInstalled
from lgpm.packages.archive import (
    ARCHIVE_EXTENSION,
    ArchiveOpener,
    ArchiveReader,
    open_archive,
)
from lgpm.packages.catalog import UI_TYPE
from lgpm.packages.manifest import (
    MANIFEST_FILENAME,
    installed_manifest,
    read_manifest,
    write_manifest,
)
from lgpm.packages.platform import PlatformInfo
from lgpm.packages.version import compare_versions

logger = logging.getLogger(__name__)


class InstallStatus(str, Enum):
    """Outcome of a single archive install."""

    INSTALLED = "installed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class InstallResult:
    """Result of an installation attempt."""

    status: InstallStatus
    source: str
    message: str
    install_path: str = ""
    module_path: str = ""
    module_name: str = ""
    version: str = ""
    main_file: str = ""
    is_core_module: bool = True
    error: str = ""

    @property
    def success(self) -> bool:
        """True for installed and skipped outcomes."""
        return self.status != InstallStatus.FAILED

    @property
    def skipped(self) -> bool:
        return self.status == InstallStatus.SKIPPED

    @classmethod
    def failure(cls, source: Path | str, error: PackageManagerError) -> "InstallResult":
        return cls(
            status=InstallStatus.FAILED,
            source=str(source),
            message=error.message,
            error=error.code,
        )


def plugins_dir_for(modules_dir: Path) -> Path:
    """Default UI plugins directory: a ``plugins`` sibling of the modules dir."""
    return Path(modules_dir).parent / "plugins"


class ArchiveInstaller:
    """Install LGX archives into the host's module directories.

    Usage:
        installer = ArchiveInstaller(modules_dir=Path("/opt/app/bin/modules"))
        result = installer.install_file("waku_module.lgx")

        # Keep an equal or newer installed version untouched:
        result = installer.install_file("waku_module.lgx", skip_if_not_newer=True)
    """

    def __init__(
        self,
        modules_dir: Path | str,
        ui_plugins_dir: Path | str | None = None,
        platform: PlatformInfo | None = None,
        opener: ArchiveOpener = open_archive,
        events: EventHub | None = None,
        staging_root: Path | str | None = None,
        archive_extension: str = ARCHIVE_EXTENSION,
    ):
        self.modules_dir = Path(modules_dir)
        self._ui_plugins_dir = Path(ui_plugins_dir) if ui_plugins_dir else None
        self.platform = platform or PlatformInfo.detect()
        self.events = events or EventHub()
        self._opener = opener
        self._staging_root = Path(staging_root) if staging_root else None
        self._archive_extension = archive_extension.lower()

    @property
    def plugins_dir(self) -> Path:
        """UI plugins directory, derived from the modules dir when unset."""
        return self._ui_plugins_dir or plugins_dir_for(self.modules_dir)

    def destination_root(self, is_core_module: bool) -> Path:
        return self.modules_dir if is_core_module else self.plugins_dir

    def install_file(
        self,
        path: Path | str,
        *,
        skip_if_not_newer: bool = False,
    ) -> InstallResult:
        """Install a local archive.

        Args:
            path: Path to the ``.lgx`` file
            skip_if_not_newer: If True, leave an installed module alone when
                its version is equal to or newer than the archive's

        Returns:
            InstallResult with status and details
        """
        source = Path(path)
        logger.info(f"Installing package file: {source}")
        try:
            result = self._install(source, skip_if_not_newer)
        except PackageManagerError as e:
            logger.warning(f"Failed to install {source.name}: {e.message}")
            return InstallResult.failure(source, e)

        logger.info(result.message)
        return result

    def _install(self, source: Path, skip_if_not_newer: bool) -> InstallResult:
        self._validate_source(source)

        if skip_if_not_newer:
            skipped = self._check_already_installed(source)
            if skipped is not None:
                return skipped

        if self._staging_root is not None:
            self._ensure_dir(self._staging_root)
        with tempfile.TemporaryDirectory(
            prefix="lgpm-stage-",
            dir=self._staging_root,
        ) as staging:
            archive = self._open(source)
            with archive:
                variant = self._select_variant(archive, source)
                variant_dir = self._extract(archive, variant, Path(staging))
                self._persist_manifest(archive, variant_dir)

            manifest = read_manifest(variant_dir) or {}
            is_core = manifest.get("type") != UI_TYPE
            dest_root = self.destination_root(is_core)
            module_name = self._module_name(manifest, variant_dir, source)
            module_dir = dest_root / module_name

            self._ensure_dir(dest_root)
            self._place(variant_dir, module_dir)

        main_file = self._main_file(manifest, module_dir, variant)
        if main_file is not None and main_file.is_file():
            self.events.publish(
                ModuleInstalled(path=str(main_file), is_core_module=is_core)
            )
        elif main_file is not None:
            logger.warning(f"Main file not found after install: {main_file}")
        else:
            logger.warning(f"No main entry for {module_name} on {variant}")

        version = manifest.get("version")
        return InstallResult(
            status=InstallStatus.INSTALLED,
            source=str(source),
            message=f"Installed {module_name} to {module_dir}",
            install_path=str(dest_root),
            module_path=str(module_dir),
            module_name=module_name,
            version=str(version) if version is not None else "",
            main_file=str(main_file) if main_file is not None else "",
            is_core_module=is_core,
        )

    def _validate_source(self, source: Path) -> None:
        if not source.exists() or not source.is_file():
            raise InvalidSource(
                f"Source package file does not exist or is not a file: {source}"
            )
        if source.suffix.lower() != self._archive_extension:
            raise InvalidSource(
                f"Unsupported package file (expected {self._archive_extension}): {source}"
            )

    def _open(self, source: Path) -> ArchiveReader:
        try:
            return self._opener(source)
        except ArchiveError as e:
            raise InvalidSource(e.message) from e

    def _check_already_installed(self, source: Path) -> InstallResult | None:
        """Return a skipped result if an equal or newer version is installed."""
        try:
            with self._opener(source) as archive:
                name = archive.name
                version = archive.version
        except ArchiveError as e:
            logger.warning(f"Could not read metadata from {source.name}: {e.message}")
            return None

        if not name or not version:
            logger.warning(
                f"Package {source.name} does not declare name/version; "
                "installing without version check"
            )
            return None

        for root in (self.modules_dir, self.plugins_dir):
            manifest = installed_manifest(root, name)
            if manifest is None or manifest.get("version") is None:
                continue
            installed_version = str(manifest["version"])
            if compare_versions(installed_version, version) >= 0:
                return InstallResult(
                    status=InstallStatus.SKIPPED,
                    source=str(source),
                    message=(
                        f"Skipped {name}: installed version {installed_version} "
                        f"is not older than {version}"
                    ),
                    install_path=str(root),
                    module_path=str(root / name),
                    module_name=name,
                    version=installed_version,
                    is_core_module=root == self.modules_dir,
                )
        return None

    def _select_variant(self, archive: ArchiveReader, source: Path) -> str:
        tried = self.platform.variants
        for variant in tried:
            if archive.has_variant(variant):
                logger.debug(f"Selected variant {variant} from {source.name}")
                return variant
        raise UnsupportedPlatform(tried, package=archive.name or source.stem)

    def _extract(self, archive: ArchiveReader, variant: str, staging: Path) -> Path:
        try:
            variant_dir = archive.extract(variant, staging)
        except OSError as e:
            raise ArchiveError(f"Failed to extract variant {variant}: {e}") from e
        if not variant_dir.is_dir():
            raise ArchiveError(f"Extracted variant directory not found: {variant_dir}")
        return variant_dir

    def _persist_manifest(self, archive: ArchiveReader, variant_dir: Path) -> None:
        """Write the archive's manifest, or a synthesized one, into the stage."""
        manifest: dict[str, Any] | None = None
        raw = archive.manifest_json()
        if raw:
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning(f"Archive manifest is not valid JSON: {e}")
            else:
                if isinstance(parsed, dict):
                    manifest = parsed

        if manifest is None:
            manifest = {
                key: value
                for key, value in (
                    ("name", archive.name),
                    ("version", archive.version),
                    ("description", archive.description),
                )
                if value is not None
            }

        try:
            write_manifest(variant_dir, manifest)
        except OSError as e:
            raise FilesystemError(f"Failed to write {MANIFEST_FILENAME}: {e}") from e

    def _module_name(
        self, manifest: dict[str, Any], variant_dir: Path, source: Path
    ) -> str:
        name = manifest.get("name")
        if isinstance(name, str) and name.strip():
            name = name.strip()
            if name in (".", "..") or "/" in name or "\\" in name:
                raise InvalidSource(f"Invalid module name in manifest: {name!r}")
            return name

        suffix = self.platform.library_suffix
        libraries = sorted(
            p for p in variant_dir.rglob(f"*{suffix}") if p.is_file()
        )
        if libraries:
            fallback = libraries[0].name[: -len(suffix)]
            logger.warning(
                f"Manifest of {source.name} has no name; "
                f"using library name {fallback!r}"
            )
            return fallback

        raise InvalidSource(
            f"Cannot determine module name for {source.name}: "
            "manifest has no name and no library was found"
        )

    def _ensure_dir(self, path: Path) -> None:
        if path.is_dir():
            return
        logger.debug(f"Creating directory: {path}")
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Failed to create directory {path}: {e}") from e

    def _place(self, staged_dir: Path, module_dir: Path) -> None:
        """Copy every staged file into ``module_dir``, replacing existing ones."""
        self._ensure_dir(module_dir)

        for item in sorted(staged_dir.rglob("*")):
            target = module_dir / item.relative_to(staged_dir)
            if item.is_dir():
                if target.exists() and not target.is_dir():
                    self._remove_stale(target)
                self._ensure_dir(target)
                continue

            if target.exists() or target.is_symlink():
                self._remove_stale(target)

            try:
                shutil.copy2(item, target)
            except OSError as e:
                raise FilesystemError(
                    f"Failed to copy {item.name} to {target}: {e}"
                ) from e
            logger.debug(f"Copied file: {target}")

    def _remove_stale(self, target: Path) -> None:
        logger.debug(f"Overwriting existing file: {target}")
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            logger.warning(f"Failed to remove existing file {target}: {e}")

    def _main_file(
        self, manifest: dict[str, Any], module_dir: Path, variant: str
    ) -> Path | None:
        """Resolve the module's entry file from the manifest ``main`` field."""
        main = manifest.get("main")
        entry: str | None = None

        if isinstance(main, dict):
            candidates = [variant] + [v for v in self.platform.variants if v != variant]
            for candidate in candidates:
                value = main.get(candidate)
                if isinstance(value, str) and value:
                    entry = value
                    break
        elif isinstance(main, str) and main:
            entry = main

        if entry is None:
            return None

        if not PurePath(entry).suffix:
            entry += self.platform.library_suffix
        return module_dir / entry
