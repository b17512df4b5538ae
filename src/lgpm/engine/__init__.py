"""Install engine: batch pipeline and single-flight request queue.

Usage:
    engine = InstallEngine(Settings.load())
    ticket = await engine.request_install(["waku_module"])
    result = await ticket.wait()
"""

from lgpm.engine.models import (
    BatchResult,
    InstallBatch,
    InstallState,
    PackageOutcome,
)
from lgpm.engine.pipeline import InstallPipeline
from lgpm.engine.queue import BatchTicket, InstallEngine

__all__ = [
    "BatchResult",
    "InstallBatch",
    "InstallState",
    "PackageOutcome",
    "InstallPipeline",
    "BatchTicket",
    "InstallEngine",
]
