"""Dependency expansion for install requests.

Dependencies are plain package names forming a DAG. Expansion is a
depth-first walk that emits every dependency before its dependent, with a
single visited set shared across all requested names so diamonds are
emitted once and cycles terminate.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from lgpm.packages.catalog import PackageDescriptor

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Resolve requested names into an ordered install list.

    Usage:
        resolver = DependencyResolver(catalog)
        order = resolver.resolve(["ui_app"])
        # resolver.missing / resolver.cycles describe what was dropped
    """

    def __init__(self, catalog: Iterable[PackageDescriptor]):
        self._packages: dict[str, PackageDescriptor] = {}
        for package in catalog:
            self._packages.setdefault(package.name, package)
        self.missing: list[str] = []
        self.cycles: list[tuple[str, str]] = []

    def resolve(self, names: Iterable[str]) -> list[str]:
        """Expand ``names`` with their transitive dependencies.

        Requested names are always part of the result, even when the catalog
        does not know them; the pipeline reports those as not found. Unknown
        dependencies are logged and dropped. An edge back into the current
        path is dropped with a warning.
        """
        self.missing = []
        self.cycles = []
        order: list[str] = []
        visited: set[str] = set()

        for requested in names:
            if not requested or requested in visited:
                continue
            visited.add(requested)
            package = self._packages.get(requested)
            if package is None:
                logger.warning(f"Package not found in catalog: {requested}")
                self._note_missing(requested)
                order.append(requested)
                continue
            self._walk(package, visited, order)

        logger.debug(f"Resolved install order: {order}")
        return order

    def _walk(
        self,
        root: PackageDescriptor,
        visited: set[str],
        order: list[str],
    ) -> None:
        stack: list[tuple[str, Iterator[str]]] = [
            (root.name, iter(root.dependencies))
        ]
        on_path = {root.name}

        while stack:
            name, deps = stack[-1]
            dep = next(deps, None)

            if dep is None:
                stack.pop()
                on_path.discard(name)
                order.append(name)
                continue

            if dep in visited:
                if dep in on_path:
                    logger.warning(
                        f"Dependency cycle: {name} -> {dep}; edge ignored"
                    )
                    self.cycles.append((name, dep))
                continue

            package = self._packages.get(dep)
            if package is None:
                logger.warning(f"Dependency not found in catalog: {dep} (required by {name})")
                self._note_missing(dep)
                continue

            visited.add(dep)
            on_path.add(dep)
            stack.append((dep, iter(package.dependencies)))

    def _note_missing(self, name: str) -> None:
        if name not in self.missing:
            self.missing.append(name)


def resolve_dependencies(
    names: Iterable[str], catalog: Iterable[PackageDescriptor]
) -> list[str]:
    """Ordered, deduplicated install list for ``names``."""
    return DependencyResolver(catalog).resolve(names)
