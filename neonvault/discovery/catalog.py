# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalog client - the narrow view of the Neon API the discoverer needs.

CatalogClient is the contract; NeonCatalogClient implements it over the
Neon v2 REST API with httpx. Tests substitute a deterministic fake.
"""

from typing import Any, Dict, List, Protocol

import httpx
import structlog

from neonvault.config import DEFAULT_NEON_API_BASE_URL
from neonvault.models import Branch, Project

logger = structlog.get_logger()

PROJECTS_PAGE_SIZE = 400


class CatalogClient(Protocol):
    """Read-only access to projects, branches and connection credentials."""

    async def list_projects(self) -> List[Project]:
        ...

    async def list_branches(self, project_id: str) -> List[Branch]:
        ...

    async def list_branch_roles(self, project_id: str, branch_id: str) -> List[str]:
        """Return role names, owner role first."""
        ...

    async def list_branch_databases(self, project_id: str, branch_id: str) -> List[str]:
        ...

    async def get_connection_uri(
        self,
        project_id: str,
        branch_id: str,
        database_name: str,
        role_name: str,
    ) -> str:
        """Return a short-lived postgres:// URI for one database and role."""
        ...


class NeonCatalogClient:
    """
    CatalogClient backed by the Neon REST API.

    Use as an async context manager so the underlying connection pool is
    closed when the run ends.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_NEON_API_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "NeonCatalogClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def list_projects(self) -> List[Project]:
        projects: List[Project] = []
        cursor: str | None = None

        while True:
            params: Dict[str, Any] = {"limit": PROJECTS_PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor
            data = await self._get("/projects", params=params)
            page = data.get("projects", [])
            projects.extend(Project.from_api(item) for item in page)

            cursor = (data.get("pagination") or {}).get("cursor")
            if not cursor or len(page) < PROJECTS_PAGE_SIZE:
                break

        return projects

    async def list_branches(self, project_id: str) -> List[Branch]:
        data = await self._get(f"/projects/{project_id}/branches")
        return [Branch.from_api(item, project_id) for item in data.get("branches", [])]

    async def list_branch_roles(self, project_id: str, branch_id: str) -> List[str]:
        data = await self._get(f"/projects/{project_id}/branches/{branch_id}/roles")
        return [role["name"] for role in data.get("roles", [])]

    async def list_branch_databases(self, project_id: str, branch_id: str) -> List[str]:
        data = await self._get(f"/projects/{project_id}/branches/{branch_id}/databases")
        return [db["name"] for db in data.get("databases", [])]

    async def get_connection_uri(
        self,
        project_id: str,
        branch_id: str,
        database_name: str,
        role_name: str,
    ) -> str:
        data = await self._get(
            f"/projects/{project_id}/connection_uri",
            params={
                "branch_id": branch_id,
                "database_name": database_name,
                "role_name": role_name,
            },
        )
        return data.get("uri", "")
