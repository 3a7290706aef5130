"""Report submission and compute-engine task polling."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import structlog

from sonarferry.config.constants import DEFAULT_PROJECT_VERSION
from sonarferry.core.errors import AnalysisError
from sonarferry.destination.client import DestinationClient

log = structlog.get_logger(__name__)

TERMINAL_FAILURES = frozenset({"FAILED", "CANCELED"})


@dataclass(frozen=True, slots=True)
class CeTask:
    """Background processing task created by a report submission."""

    id: str
    status: str = "PENDING"
    error_message: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CeTask:
        return cls(
            id=str(data.get("id") or "unknown"),
            status=str(data.get("status") or "PENDING"),
            error_message=data.get("errorMessage"),
        )


class ReportUploader:
    """Submits report bundles and optionally waits for processing."""

    def __init__(self, client: DestinationClient, *, poll_interval_sec: float = 2.0) -> None:
        self._client = client
        self._poll_interval = poll_interval_sec

    def _properties(self, version: str) -> list[str]:
        return [
            f"sonar.projectKey={self._client.project_key}",
            f"sonar.organization={self._client.organization}",
            f"sonar.projectVersion={version}",
            "sonar.sourceEncoding=UTF-8",
        ]

    async def upload(self, bundle: bytes, version: str = DEFAULT_PROJECT_VERSION) -> CeTask:
        log.info("report_upload_started", project=self._client.project_key, bytes=len(bundle))
        task = CeTask.from_api(await self._client.submit_report(bundle, self._properties(version)))
        log.info("report_uploaded", task_id=task.id)
        return task

    async def wait_for_analysis(self, task_id: str, max_wait_sec: float = 300.0) -> CeTask:
        """Poll until SUCCESS. FAILED/CANCELED and timeouts raise AnalysisError."""
        started = time.monotonic()
        while True:
            task = CeTask.from_api({"id": task_id, **await self._client.get_ce_task(task_id)})
            log.debug("analysis_status", task_id=task_id, status=task.status)
            if task.status == "SUCCESS":
                log.info("analysis_completed", task_id=task_id)
                return task
            if task.status in TERMINAL_FAILURES:
                raise AnalysisError.task_failed(task_id, task.status, task.error_message or "Unknown error")
            if time.monotonic() - started > max_wait_sec:
                raise AnalysisError.timeout(task_id, max_wait_sec)
            await asyncio.sleep(self._poll_interval)

    async def upload_and_wait(
        self,
        bundle: bytes,
        version: str = DEFAULT_PROJECT_VERSION,
        max_wait_sec: float = 300.0,
    ) -> CeTask:
        task = await self.upload(bundle, version)
        return await self.wait_for_analysis(task.id, max_wait_sec)
