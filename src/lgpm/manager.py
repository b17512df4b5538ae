"""PackageManager: the public entry point for hosts and the CLI.

Wraps one ``InstallEngine`` and adds the read-only catalog views
(listing, categories, search) on top of it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable

from lgpm.config import Settings
from lgpm.engine.models import BatchResult
from lgpm.engine.queue import BatchTicket, InstallEngine
from lgpm.events import EventHub, Subscriber
from lgpm.packages.archive import ArchiveOpener, open_archive
from lgpm.packages.catalog import (
    CatalogEntry,
    categories,
    filter_by_category,
    reconcile_installed,
    search,
)
from lgpm.packages.fetch import Fetcher
from lgpm.packages.installer import InstallResult
from lgpm.packages.resolver import DependencyResolver

logger = logging.getLogger(__name__)


class PackageManager:
    """Catalog browsing and installation against one set of directories.

    Usage:
        async with PackageManager(Settings.load()) as pm:
            for entry in await pm.get_packages(category="networking"):
                print(entry.name, entry.installed)
            result = await pm.install_packages(["chat_ui"])
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        fetcher: Fetcher | None = None,
        events: EventHub | None = None,
        opener: ArchiveOpener = open_archive,
    ):
        self.settings = settings or Settings.load()
        self.engine = InstallEngine(
            self.settings,
            fetcher=fetcher,
            events=events,
            opener=opener,
        )

    @property
    def events(self) -> EventHub:
        return self.engine.events

    @property
    def modules_dir(self) -> Path:
        return self.settings.modules_dir

    @property
    def plugins_dir(self) -> Path:
        return self.settings.plugins_dir

    def set_modules_dir(self, path: Path | str) -> None:
        self.settings.modules_dir = Path(path)
        logger.debug(f"Modules directory set to {self.settings.modules_dir}")

    def set_ui_plugins_dir(self, path: Path | str | None) -> None:
        self.settings.ui_plugins_dir = Path(path) if path else None
        logger.debug(f"UI plugins directory set to {self.settings.plugins_dir}")

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.events.subscribe(callback)

    async def get_packages(self, category: str | None = None) -> list[CatalogEntry]:
        """Catalog entries with their current installed status."""
        catalog = await self.engine.catalog.fetch_catalog()
        entries = reconcile_installed(catalog, self.modules_dir, self.plugins_dir)
        if category:
            entries = filter_by_category(entries, category)
        return entries

    async def get_categories(self) -> list[str]:
        return categories(await self.engine.catalog.fetch_catalog())

    async def search(self, query: str) -> list[CatalogEntry]:
        return search(await self.get_packages(), query)

    async def resolve_dependencies(self, names: Iterable[str]) -> list[str]:
        """Install order for ``names``, dependencies first."""
        catalog = await self.engine.catalog.fetch_catalog()
        return DependencyResolver(catalog).resolve(names)

    def install_file(
        self,
        path: Path | str,
        skip_if_not_newer: bool = False,
    ) -> InstallResult:
        """Install a local ``.lgx`` archive."""
        installer = self.engine.installer_for()
        return installer.install_file(path, skip_if_not_newer=skip_if_not_newer)

    async def request_install(
        self,
        names: Iterable[str],
        modules_dir: Path | str | None = None,
    ) -> BatchTicket:
        return await self.engine.request_install(names, modules_dir)

    async def install_packages(
        self,
        names: Iterable[str],
        modules_dir: Path | str | None = None,
    ) -> BatchResult:
        """Install ``names`` plus dependencies and wait for the batch."""
        ticket = await self.engine.request_install(names, modules_dir)
        return await ticket.wait()

    async def aclose(self) -> None:
        await self.engine.aclose()

    async def __aenter__(self) -> "PackageManager":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()
