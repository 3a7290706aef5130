"""Client for the SonarCloud organization receiving the migration.

Retries 429/503 responses with exponential backoff and spaces POSTs by
``rate_limit.min_request_interval_sec``.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from sonarferry.config.constants import DEFAULT_DESTINATION_BRANCH
from sonarferry.config.models import DestinationConfig, RateLimitConfig, TimeoutsConfig
from sonarferry.core.errors import DestinationApiError, SonarFerryError
from sonarferry.core.http import ApiClient

log = structlog.get_logger(__name__)


class DestinationClient(ApiClient):
    """SonarCloud Web API calls scoped to one organization and project."""

    service_name = "SonarCloud"
    error_type = DestinationApiError

    def __init__(
        self,
        config: DestinationConfig,
        project_key: str,
        rate_limit: RateLimitConfig | None = None,
        timeouts: TimeoutsConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        rate_limit = rate_limit or RateLimitConfig()
        timeouts = timeouts or TimeoutsConfig()
        super().__init__(
            config.url,
            config.token,
            timeout=timeouts.request_sec,
            max_retries=rate_limit.max_retries,
            base_delay_sec=rate_limit.base_delay_sec,
            min_request_interval_sec=rate_limit.min_request_interval_sec,
            transport=transport,
        )
        self.organization = config.organization
        self.project_key = project_key

    def _on_retries_exhausted(self, response: httpx.Response, endpoint: str) -> None:
        raise DestinationApiError.rate_limited(response.status_code, endpoint, self._max_retries)

    # Project

    async def test_connection(self) -> bool:
        """Verify the token and that the organization exists."""
        log.info("testing_connection", service=self.service_name, organization=self.organization)
        data = await self.get_json("/api/organizations/search", {"organizations": self.organization})
        if not data.get("organizations"):
            raise DestinationApiError.not_found(f"organization {self.organization}")
        return True

    async def project_exists(self) -> bool:
        data = await self.get_json(
            "/api/projects/search",
            {"projects": self.project_key, "organization": self.organization},
        )
        return bool(data.get("components"))

    async def ensure_project(self, name: str | None = None) -> bool:
        """Create the project when missing. Returns True when it was created."""
        if await self.project_exists():
            log.debug("project_exists", project=self.project_key)
            return False
        await self.post(
            "/api/projects/create",
            {"project": self.project_key, "name": name or self.project_key, "organization": self.organization},
        )
        log.info("project_created", project=self.project_key, name=name or self.project_key)
        return True

    async def get_quality_profiles(self) -> list[dict[str, Any]]:
        """Profiles applied to the project; empty on failure so reports fall back to defaults."""
        try:
            data = await self.get_json(
                "/api/qualityprofiles/search",
                {"project": self.project_key, "organization": self.organization},
            )
        except SonarFerryError as e:
            log.warning("quality_profiles_unavailable", error=e.message)
            return []
        return data.get("profiles") or []

    async def get_main_branch_name(self) -> str:
        try:
            data = await self.get_json("/api/project_branches/list", {"project": self.project_key})
        except SonarFerryError as e:
            log.warning("main_branch_unavailable", error=e.message, fallback=DEFAULT_DESTINATION_BRANCH)
            return DEFAULT_DESTINATION_BRANCH
        for branch in data.get("branches") or []:
            if branch.get("isMain"):
                return str(branch.get("name") or DEFAULT_DESTINATION_BRANCH)
        return DEFAULT_DESTINATION_BRANCH

    # Compute engine

    async def submit_report(self, bundle: bytes, properties: list[str]) -> dict[str, Any]:
        data = await self.post(
            "/api/ce/submit",
            data={
                "projectKey": self.project_key,
                "organization": self.organization,
                "properties": "\n".join(properties),
            },
            files={"report": ("scanner-report.zip", bundle, "application/zip")},
        )
        return data.get("ceTask") or data.get("task") or {"id": data.get("taskId", "unknown")}

    async def get_ce_task(self, task_id: str) -> dict[str, Any]:
        data = await self.get_json("/api/ce/task", {"id": task_id})
        return data.get("task") or {}

    # Issues

    async def search_issues(self, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        params = {"componentKeys": self.project_key, "organization": self.organization, **(filters or {})}
        return await self.get_paginated("/api/issues/search", params, data_key="issues")

    async def transition_issue(self, issue: str, transition: str) -> None:
        await self.post("/api/issues/do_transition", {"issue": issue, "transition": transition})

    async def assign_issue(self, issue: str, assignee: str) -> None:
        await self.post("/api/issues/assign", {"issue": issue, "assignee": assignee})

    async def add_issue_comment(self, issue: str, text: str) -> None:
        await self.post("/api/issues/add_comment", {"issue": issue, "text": text})

    async def set_issue_tags(self, issue: str, tags: list[str]) -> None:
        await self.post("/api/issues/set_tags", {"issue": issue, "tags": ",".join(tags)})

    # Hotspots

    async def search_hotspots(self, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        params = {"projectKey": self.project_key, "organization": self.organization, **(filters or {})}
        return await self.get_paginated("/api/hotspots/search", params, data_key="hotspots")

    async def change_hotspot_status(self, hotspot: str, status: str, resolution: str | None = None) -> None:
        params = {"hotspot": hotspot, "status": status}
        if resolution:
            params["resolution"] = resolution
        await self.post("/api/hotspots/change_status", params)

    async def add_hotspot_comment(self, hotspot: str, text: str) -> None:
        await self.post("/api/hotspots/add_comment", {"hotspot": hotspot, "comment": text})
