"""Data structures for the install pipeline and request queue."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from lgpm.errors import PackageManagerError
from lgpm.packages.installer import InstallResult, InstallStatus


class InstallState(str, Enum):
    """Install pipeline states."""

    IDLE = "idle"
    FETCHING_CATALOG = "fetching_catalog"
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    ADVANCING = "advancing"


def generate_batch_id() -> str:
    return f"batch_{uuid.uuid4().hex[:12]}"


@dataclass
class PackageOutcome:
    """What happened to one package of a batch."""

    package: str
    status: InstallStatus
    message: str = ""
    error: str = ""
    install_path: str = ""

    @property
    def success(self) -> bool:
        return self.status != InstallStatus.FAILED

    @classmethod
    def from_result(cls, package: str, result: InstallResult) -> "PackageOutcome":
        return cls(
            package=package,
            status=result.status,
            message=result.message,
            error=result.error,
            install_path=result.install_path,
        )

    @classmethod
    def failed(cls, package: str, error: PackageManagerError) -> "PackageOutcome":
        return cls(
            package=package,
            status=InstallStatus.FAILED,
            message=error.message,
            error=error.code,
        )


@dataclass
class InstallBatch:
    """Ordered packages processed together by one pipeline run.

    A batch admitted with ``resolved=False`` holds the requested names; the
    pipeline replaces them with the dependency-ordered list when it starts.
    """

    packages: list[str]
    modules_dir: Path | None = None
    resolved: bool = True
    batch_id: str = field(default_factory=generate_batch_id)
    current_index: int = 0
    downloaded_files: list[Path] = field(default_factory=list)
    outcomes: list[PackageOutcome] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.current_index >= len(self.packages)

    @property
    def current(self) -> str | None:
        if self.done:
            return None
        return self.packages[self.current_index]


@dataclass
class BatchResult:
    """Aggregate outcome of a batch."""

    batch_id: str
    packages: list[str]
    outcomes: list[PackageOutcome] = field(default_factory=list)
    error: str = ""

    @property
    def failed(self) -> list[str]:
        return [o.package for o in self.outcomes if not o.success]

    @property
    def success(self) -> bool:
        """True only if every package was installed or skipped."""
        if self.error:
            return False
        return len(self.outcomes) == len(self.packages) and not self.failed

    @property
    def message(self) -> str:
        if self.error:
            return self.error
        if self.failed:
            return f"Failed to install: {', '.join(self.failed)}"
        return f"Installed {len(self.packages)} package(s)"

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "packages": list(self.packages),
            "success": self.success,
            "error": self.error,
            "outcomes": [
                {
                    "package": o.package,
                    "status": o.status.value,
                    "message": o.message,
                    "error": o.error,
                }
                for o in self.outcomes
            ],
        }
