"""Walking-route pipeline orchestration."""

from __future__ import annotations

__all__ = ["PipelineOrchestrator", "PipelineRun", "PipelineState", "StatusLog"]

from .orchestrator import PipelineOrchestrator, PipelineRun  # noqa: E402
from .states import PipelineState  # noqa: E402
from .status_log import StatusLog  # noqa: E402
