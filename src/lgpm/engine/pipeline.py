"""Install pipeline: drive one batch through fetch -> download -> install.

State machine:

    idle -> fetching_catalog -> downloading -> installing -> advancing
                 ^                                               |
                 +----------------- next package ----------------+

Every package is attempted even if an earlier one failed. Per-package
failures are captured into ``PackageOutcome`` and published as
``PackageInstallFinished``; they never escape ``run``.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable

from lgpm.engine.models import (
    BatchResult,
    InstallBatch,
    InstallState,
    PackageOutcome,
)
from lgpm.errors import (
    CatalogUnavailable,
    FilesystemError,
    InvalidSource,
    PackageManagerError,
    PackageNotFound,
)
from lgpm.events import BatchFinished, EventHub, PackageInstallFinished
from lgpm.packages.catalog import CatalogClient, find_by_name
from lgpm.packages.installer import ArchiveInstaller, InstallStatus
from lgpm.packages.resolver import DependencyResolver

logger = logging.getLogger(__name__)

InstallerFactory = Callable[[Path | None], ArchiveInstaller]


class InstallPipeline:
    """Processes batches package by package.

    One pipeline instance is owned by one ``InstallEngine``, which makes
    sure ``run`` is never entered while another run is in progress.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        installer_factory: InstallerFactory,
        events: EventHub,
        temp_dir: Path | str | None = None,
        skip_if_not_newer: bool = True,
    ):
        self._catalog = catalog
        self._installer_factory = installer_factory
        self._events = events
        self._temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self._skip_if_not_newer = skip_if_not_newer
        self._state = InstallState.IDLE
        self.state_history: list[InstallState] = []

    @property
    def state(self) -> InstallState:
        return self._state

    def _set_state(self, state: InstallState) -> None:
        if state != self._state:
            logger.debug(f"Pipeline state: {self._state.value} -> {state.value}")
        self._state = state
        self.state_history.append(state)

    async def run(self, batch: InstallBatch) -> BatchResult:
        """Resolve ``batch`` if needed, then install every package in order.

        ``state_history`` only records the transitions of this run. A
        catalog failure while resolving fails the batch as a whole, before
        any package is attempted.
        """
        self.state_history.clear()
        error = ""
        try:
            if not batch.resolved:
                await self._resolve(batch)
        except CatalogUnavailable as e:
            logger.error(f"Cannot install {', '.join(batch.packages)}: {e.message}")
            error = e.message
        else:
            logger.info(f"Starting batch {batch.batch_id}: {', '.join(batch.packages)}")
            await self._install_all(batch)
        finally:
            self._set_state(InstallState.IDLE)

        result = BatchResult(
            batch_id=batch.batch_id,
            packages=list(batch.packages),
            outcomes=list(batch.outcomes),
            error=error,
        )
        self._events.publish(
            BatchFinished(
                batch_id=batch.batch_id,
                packages=result.packages,
                success=result.success,
                failed=list(result.packages) if error else result.failed,
                error="" if result.success else result.message,
            )
        )
        logger.info(f"Finished batch {batch.batch_id}: {result.message}")
        return result

    async def _resolve(self, batch: InstallBatch) -> None:
        """Replace the requested names with the dependency-ordered list."""
        self._set_state(InstallState.FETCHING_CATALOG)
        catalog = await self._catalog.load_catalog()
        resolver = DependencyResolver(catalog)
        batch.packages = resolver.resolve(batch.packages)
        batch.resolved = True
        if resolver.cycles:
            logger.warning(
                "Dependency cycles broken: "
                + ", ".join(f"{a} -> {b}" for a, b in resolver.cycles)
            )

    async def _install_all(self, batch: InstallBatch) -> None:
        try:
            installer = self._installer_factory(batch.modules_dir)
            self._temp_dir.mkdir(parents=True, exist_ok=True)
            download_dir = Path(tempfile.mkdtemp(prefix="lgpm-dl-", dir=self._temp_dir))
        except (PackageManagerError, OSError) as e:
            error = e if isinstance(e, PackageManagerError) else FilesystemError(
                f"Cannot prepare install of batch {batch.batch_id}: {e}"
            )
            logger.error(error.message)
            while not batch.done:
                self._finish_package(batch, PackageOutcome.failed(batch.current, error))
            return

        try:
            while not batch.done:
                outcome = await self._install_one(batch, batch.current, installer, download_dir)
                self._finish_package(batch, outcome)
        finally:
            shutil.rmtree(download_dir, ignore_errors=True)

    def _finish_package(self, batch: InstallBatch, outcome: PackageOutcome) -> None:
        """Record ``outcome``, publish its signal and move the cursor on."""
        name = outcome.package
        batch.outcomes.append(outcome)
        if outcome.success:
            logger.info(f"{name}: {outcome.message}")
        else:
            logger.warning(f"Failed to install package {name}: {outcome.message}")

        self._events.publish(
            PackageInstallFinished(
                batch_id=batch.batch_id,
                package=name,
                success=outcome.success,
                skipped=outcome.status == InstallStatus.SKIPPED,
                error="" if outcome.success else outcome.message,
                error_code=outcome.error or None,
            )
        )
        self._set_state(InstallState.ADVANCING)
        batch.current_index += 1

    async def _install_one(
        self,
        batch: InstallBatch,
        name: str,
        installer: ArchiveInstaller,
        download_dir: Path,
    ) -> PackageOutcome:
        try:
            self._set_state(InstallState.FETCHING_CATALOG)
            catalog = await self._catalog.load_catalog()
            package = find_by_name(catalog, name)
            if package is None:
                raise PackageNotFound(f"Package not found: {name}", package=name)
            if not package.archive_file:
                raise InvalidSource("Package has no package file specified", package=name)

            self._set_state(InstallState.DOWNLOADING)
            archive_path = download_dir / Path(package.archive_file).name
            try:
                await self._catalog.download(package.archive_file, download_dir)
                batch.downloaded_files.append(archive_path)

                self._set_state(InstallState.INSTALLING)
                result = installer.install_file(
                    archive_path,
                    skip_if_not_newer=self._skip_if_not_newer,
                )
            finally:
                self._discard(batch, archive_path)

        except PackageManagerError as e:
            return PackageOutcome.failed(name, e)
        except Exception as e:
            logger.exception(f"Unexpected error installing {name}")
            return PackageOutcome(
                package=name,
                status=InstallStatus.FAILED,
                message=f"Unexpected error: {e}",
                error="internal_error",
            )

        return PackageOutcome.from_result(name, result)

    def _discard(self, batch: InstallBatch, path: Path) -> None:
        """Delete a downloaded archive once its install attempt is over."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove temp file {path}: {e}")
        else:
            logger.debug(f"Cleaned up temp file: {path}")
        if path in batch.downloaded_files:
            batch.downloaded_files.remove(path)
