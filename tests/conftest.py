"""Shared fixtures: a fake fetcher and real LGX archives built in tmp_path."""

from __future__ import annotations

import asyncio
import io
import json
import tarfile
from pathlib import Path
from typing import Any, Callable

import pytest

from lgpm.config import Settings
from lgpm.errors import FetchError
from lgpm.packages.platform import PlatformInfo

BASE_URL = "https://example.test/releases/latest/download"
HOST_VARIANT = "linux-x86_64"


class FakeFetcher:
    """Serves bytes from a dict keyed by URL; unknown URLs are a 404."""

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.files: dict[str, bytes] = {}
        self.requests: list[str] = []
        self._gates: dict[str, asyncio.Event] = {}

    def url(self, name: str) -> str:
        return f"{self.base_url}/{name}"

    def serve(self, name: str, data: bytes) -> None:
        self.files[self.url(name)] = data

    def serve_catalog(self, entries: list[dict[str, Any]]) -> None:
        self.serve("list.json", json.dumps(entries).encode("utf-8"))

    def remove(self, name: str) -> None:
        self.files.pop(self.url(name), None)

    def hold(self, name: str) -> asyncio.Event:
        """Block fetches of ``name`` until the returned event is set."""
        gate = asyncio.Event()
        self._gates[self.url(name)] = gate
        return gate

    def count(self, name: str) -> int:
        return self.requests.count(self.url(name))

    async def fetch(self, url: str) -> bytes:
        self.requests.append(url)
        gate = self._gates.get(url)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if url not in self.files:
            raise FetchError(f"HTTP 404 for {url}", url=url, status=404)
        return self.files[url]


def write_lgx(
    path: Path,
    manifest: dict[str, Any] | None,
    variants: dict[str, dict[str, bytes]],
) -> Path:
    """Write a gzip tarball with manifest.json and variants/<id>/ trees."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        if manifest is not None:
            data = json.dumps(manifest).encode("utf-8")
            info = tarfile.TarInfo("manifest.json")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
        for variant, files in variants.items():
            for rel, content in files.items():
                info = tarfile.TarInfo(f"variants/{variant}/{rel}")
                info.size = len(content)
                info.mode = 0o755 if rel.endswith(".so") else 0o644
                tar.addfile(info, io.BytesIO(content))
    return path


def catalog_entry(
    name: str,
    dependencies: tuple[str, ...] = (),
    type: str = "core",
    category: str = "network",
    description: str = "",
) -> dict[str, Any]:
    return {
        "name": name,
        "moduleName": name,
        "type": type,
        "category": category,
        "author": "Test Author",
        "description": description or f"The {name} package",
        "dependencies": list(dependencies),
        "package": f"{name}.lgx",
    }


@pytest.fixture
def archives_dir(tmp_path) -> Path:
    return tmp_path / "archives"


@pytest.fixture
def build_lgx(archives_dir) -> Callable[..., Path]:
    """Build an archive for a module with sensible defaults.

    build_lgx("waku_module", version="1.2.0", module_type="ui",
              variants=("linux-amd64",), manifest=None)
    """

    def build(
        name: str,
        version: str = "1.0.0",
        module_type: str = "core",
        variants: tuple[str, ...] = (HOST_VARIANT,),
        manifest: dict[str, Any] | None | str = "default",
        files: dict[str, bytes] | None = None,
        filename: str | None = None,
    ) -> Path:
        if manifest == "default":
            manifest = {
                "name": name,
                "version": version,
                "type": module_type,
                "description": f"{name} module",
                "main": {v: name for v in variants},
            }
        payload = files if files is not None else {
            f"{name}.so": f"{name}-{version}".encode("utf-8"),
        }
        return write_lgx(
            archives_dir / (filename or f"{name}.lgx"),
            manifest,
            {v: payload for v in variants},
        )

    return build


@pytest.fixture
def host_platform() -> PlatformInfo:
    return PlatformInfo.for_variant(HOST_VARIANT)


@pytest.fixture
def modules_dir(tmp_path) -> Path:
    return tmp_path / "app" / "bin" / "modules"


@pytest.fixture
def plugins_dir(tmp_path) -> Path:
    return tmp_path / "app" / "bin" / "plugins"


@pytest.fixture
def settings(tmp_path, modules_dir) -> Settings:
    return Settings(
        modules_dir=modules_dir,
        base_url=BASE_URL,
        temp_dir=tmp_path / "tmp",
        platform_variant=HOST_VARIANT,
    )


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def publish(fetcher, build_lgx) -> Callable[..., dict[str, Any]]:
    """Build a module archive, serve it, and return its catalog entry."""

    def _publish(
        name: str,
        version: str = "1.0.0",
        dependencies: tuple[str, ...] = (),
        module_type: str = "core",
        category: str = "network",
        variants: tuple[str, ...] = (HOST_VARIANT,),
    ) -> dict[str, Any]:
        path = build_lgx(
            name, version=version, module_type=module_type, variants=variants
        )
        fetcher.serve(path.name, path.read_bytes())
        return catalog_entry(
            name, dependencies, type=module_type, category=category
        )

    return _publish
