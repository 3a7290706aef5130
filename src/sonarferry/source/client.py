"""Read-only client for the self-hosted SonarQube server."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from sonarferry.config.models import SourceConfig, TimeoutsConfig
from sonarferry.core.errors import SourceApiError
from sonarferry.core.http import ApiClient

log = structlog.get_logger(__name__)


class SourceClient(ApiClient):
    """SonarQube Web API reads scoped to one project."""

    service_name = "SonarQube"
    error_type = SourceApiError

    def __init__(
        self,
        config: SourceConfig,
        timeouts: TimeoutsConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        timeouts = timeouts or TimeoutsConfig()
        super().__init__(config.url, config.token, timeout=timeouts.request_sec, transport=transport)
        self.project_key = config.project_key

    @staticmethod
    def _with_branch(params: dict[str, Any], branch: str | None) -> dict[str, Any]:
        if branch:
            params["branch"] = branch
        return params

    async def test_connection(self) -> bool:
        log.info("testing_connection", service=self.service_name, url=self.base_url)
        await self.get_json("/api/system/status")
        return True

    async def get_project(self) -> dict[str, Any]:
        data = await self.get_json("/api/projects/search", {"projects": self.project_key})
        projects = data.get("components") or []
        if not projects:
            raise SourceApiError.not_found(f"project {self.project_key}")
        return projects[0]

    async def get_branches(self) -> list[dict[str, Any]]:
        data = await self.get_json("/api/project_branches/list", {"project": self.project_key})
        return data.get("branches") or []

    async def get_metrics(self) -> list[dict[str, Any]]:
        return await self.get_paginated("/api/metrics/search", data_key="metrics")

    async def get_component_tree(self, branch: str | None, metric_keys: list[str]) -> list[dict[str, Any]]:
        params = {
            "component": self.project_key,
            "metricKeys": ",".join(metric_keys),
            "qualifiers": "DIR,FIL",
            "strategy": "all",
        }
        return await self.get_paginated(
            "/api/measures/component_tree",
            self._with_branch(params, branch),
            data_key="components",
        )

    async def get_source_files(self, branch: str | None = None) -> list[dict[str, Any]]:
        params = {"component": self.project_key, "qualifiers": "FIL"}
        return await self.get_paginated("/api/components/tree", self._with_branch(params, branch))

    async def get_source_code(self, file_key: str, branch: str | None = None) -> str:
        return await self.get_text("/api/sources/raw", self._with_branch({"key": file_key}, branch))

    async def get_measures(self, branch: str | None, metric_keys: list[str]) -> dict[str, Any]:
        params = {"component": self.project_key, "metricKeys": ",".join(metric_keys)}
        data = await self.get_json("/api/measures/component", self._with_branch(params, branch))
        return data.get("component") or {}

    async def get_issues(self, branch: str | None = None, *, with_comments: bool = True) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"componentKeys": self.project_key}
        if with_comments:
            params["additionalFields"] = "comments"
        return await self.get_paginated("/api/issues/search", self._with_branch(params, branch), data_key="issues")

    async def get_issue_changelog(self, issue_key: str) -> list[dict[str, Any]]:
        data = await self.get_json("/api/issues/changelog", {"issue": issue_key})
        return data.get("changelog") or []

    async def get_hotspots(self, branch: str | None = None) -> list[dict[str, Any]]:
        params = {"projectKey": self.project_key}
        return await self.get_paginated("/api/hotspots/search", self._with_branch(params, branch), data_key="hotspots")

    async def get_hotspot_details(self, hotspot_key: str) -> dict[str, Any]:
        return await self.get_json("/api/hotspots/show", {"hotspot": hotspot_key})

    async def get_latest_analysis_revision(self, branch: str | None = None) -> str | None:
        """SCM revision of the latest analysis, or None when unknown."""
        params = self._with_branch({"project": self.project_key, "ps": 1}, branch)
        try:
            data = await self.get_json("/api/project_analyses/search", params)
        except SourceApiError as e:
            log.warning("analysis_revision_unavailable", branch=branch, error=e.message)
            return None
        analyses = data.get("analyses") or []
        if analyses and analyses[0].get("revision"):
            return str(analyses[0]["revision"])
        return None

    async def get_quality_profiles(self) -> list[dict[str, Any]]:
        data = await self.get_json("/api/qualityprofiles/search", {"project": self.project_key})
        return data.get("profiles") or []

    async def get_active_rules(self, profile_key: str) -> list[dict[str, Any]]:
        params = {"qprofile": profile_key, "activation": "true", "f": "repo,severity,params,createdAt,updatedAt"}
        return await self.get_paginated("/api/rules/search", params, data_key="rules")
