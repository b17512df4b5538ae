"""Install engine: single-flight request queue in front of the pipeline.

At most one batch is active at any time. A request that arrives while a
batch is running is parked in a FIFO deque and started once every earlier
batch has finished. All bookkeeping happens on the event loop thread, so
no lock is needed: the queue is only touched between await points.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from pathlib import Path
from typing import Iterable

from lgpm.config import Settings
from lgpm.engine.models import (
    BatchResult,
    InstallBatch,
    InstallState,
)
from lgpm.engine.pipeline import InstallPipeline
from lgpm.events import BatchFinished, EventHub
from lgpm.packages.archive import ArchiveOpener, open_archive
from lgpm.packages.catalog import CatalogClient
from lgpm.packages.fetch import Fetcher, HttpFetcher
from lgpm.packages.installer import ArchiveInstaller

logger = logging.getLogger(__name__)


class BatchTicket:
    """Handle returned for every install request.

    ``queued`` is True when the batch had to wait behind another one.
    ``packages`` holds the requested names until the batch starts and the
    resolved install order afterwards. Await ``wait()`` for the final
    ``BatchResult``.
    """

    def __init__(self, batch: InstallBatch, queued: bool = False):
        self.batch_id = batch.batch_id
        self.queued = queued
        self._batch = batch
        self._future: asyncio.Future[BatchResult] = (
            asyncio.get_running_loop().create_future()
        )

    @property
    def packages(self) -> list[str]:
        return list(self._batch.packages)

    def done(self) -> bool:
        return self._future.done()

    async def wait(self) -> BatchResult:
        return await asyncio.shield(self._future)

    def _resolve(self, result: BatchResult) -> None:
        if not self._future.done():
            self._future.set_result(result)

    def __repr__(self) -> str:
        return (
            f"BatchTicket({self.batch_id!r}, packages={self.packages!r}, "
            f"queued={self.queued}, done={self.done()})"
        )


class InstallEngine:
    """Owns the pipeline, the FIFO of waiting batches and the driver task.

    Usage:
        engine = InstallEngine(Settings.load())
        ticket = await engine.request_install(["waku_module"])
        result = await ticket.wait()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        fetcher: Fetcher | None = None,
        catalog_client: CatalogClient | None = None,
        events: EventHub | None = None,
        opener: ArchiveOpener = open_archive,
    ):
        self.settings = settings or Settings.load()
        self.events = events or EventHub()
        self._owns_fetcher = fetcher is None and catalog_client is None
        self._fetcher = fetcher or (
            HttpFetcher(timeout=self.settings.request_timeout)
            if catalog_client is None
            else catalog_client.fetcher
        )
        self.catalog = catalog_client or CatalogClient(
            fetcher=self._fetcher,
            base_url=self.settings.download_url,
        )
        self._opener = opener
        self.pipeline = InstallPipeline(
            catalog=self.catalog,
            installer_factory=self.installer_for,
            events=self.events,
            temp_dir=self.settings.temp_dir,
            skip_if_not_newer=self.settings.skip_if_not_newer,
        )

        self._pending: deque[tuple[InstallBatch, BatchTicket]] = deque()
        self._active: InstallBatch | None = None
        self._task: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    def installer_for(self, modules_dir: Path | None = None) -> ArchiveInstaller:
        """Build an installer bound to the configured (or given) directories."""
        target = Path(modules_dir) if modules_dir else self.settings.modules_dir
        return ArchiveInstaller(
            modules_dir=target,
            ui_plugins_dir=self.settings.ui_plugins_dir,
            platform=self.settings.platform,
            opener=self._opener,
            events=self.events,
            staging_root=self.settings.temp_dir,
        )

    @property
    def state(self) -> InstallState:
        return self.pipeline.state

    @property
    def is_installing(self) -> bool:
        """True from the admission of a batch until the queue has drained."""
        return self._task is not None

    @property
    def queue_depth(self) -> int:
        """Batches waiting behind the active one."""
        return len(self._pending)

    @property
    def active_batch(self) -> InstallBatch | None:
        return self._active

    async def request_install(
        self,
        names: Iterable[str],
        modules_dir: Path | str | None = None,
    ) -> BatchTicket:
        """Admit a batch for ``names`` without waiting for any work.

        Batches are admitted in call order. The catalog is fetched and the
        dependencies are resolved when the batch starts; if the catalog
        cannot be loaded then, the ticket completes with that failure and
        no package is attempted. A request without names is rejected at
        once and nothing is queued.
        """
        requested = [n for n in names if n]
        batch = InstallBatch(
            packages=requested,
            modules_dir=Path(modules_dir) if modules_dir else None,
            resolved=False,
        )
        if not requested:
            return self._reject(batch, "No packages requested")
        return self._admit(batch)

    def submit(
        self,
        packages: Iterable[str],
        modules_dir: Path | str | None = None,
    ) -> BatchTicket:
        """Admit an already-resolved package list.

        Must be called from within a running event loop.
        """
        batch = InstallBatch(
            packages=list(packages),
            modules_dir=Path(modules_dir) if modules_dir else None,
        )
        if not batch.packages:
            return self._reject(batch, "No packages requested")
        return self._admit(batch)

    def _reject(self, batch: InstallBatch, error: str) -> BatchTicket:
        logger.error(f"Install request rejected: {error}")
        ticket = BatchTicket(batch)
        self.events.publish(
            BatchFinished(
                batch_id=batch.batch_id,
                packages=[],
                success=False,
                error=error,
            )
        )
        ticket._resolve(BatchResult(batch_id=batch.batch_id, packages=[], error=error))
        return ticket

    def _admit(self, batch: InstallBatch) -> BatchTicket:
        """Start the driver on ``batch`` if idle, otherwise queue it."""
        busy = self._task is not None
        ticket = BatchTicket(batch, queued=busy)
        self._idle.clear()

        if busy:
            self._pending.append((batch, ticket))
            logger.info(
                f"Installation in progress, queued batch {batch.batch_id} "
                f"({self.queue_depth} waiting)"
            )
        else:
            self._active = batch
            self._task = asyncio.create_task(
                self._drive(batch, ticket), name="lgpm-install"
            )
        return ticket

    async def _drive(self, batch: InstallBatch, ticket: BatchTicket) -> None:
        """Run ``batch``, then every queued batch in FIFO order."""
        try:
            while True:
                self._active = batch
                try:
                    result = await self.pipeline.run(batch)
                except Exception as e:
                    logger.exception(f"Batch {batch.batch_id} aborted")
                    result = BatchResult(
                        batch_id=batch.batch_id,
                        packages=list(batch.packages),
                        outcomes=list(batch.outcomes),
                        error=f"Unexpected error: {e}",
                    )
                    self.events.publish(
                        BatchFinished(
                            batch_id=batch.batch_id,
                            packages=result.packages,
                            success=False,
                            failed=list(batch.packages),
                            error=result.error,
                        )
                    )
                finally:
                    self._active = None
                ticket._resolve(result)

                if not self._pending:
                    break
                batch, ticket = self._pending.popleft()
        finally:
            self._task = None
            self._idle.set()

    async def wait_idle(self) -> None:
        """Wait until the active batch and every queued batch are done."""
        await self._idle.wait()

    async def aclose(self) -> None:
        """Let pending work finish, then release the HTTP client."""
        if self._task is not None:
            await self.wait_idle()
        if self._owns_fetcher and isinstance(self._fetcher, HttpFetcher):
            await self._fetcher.aclose()
