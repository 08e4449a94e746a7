# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Resource discovery - enumerate (project, branch) pairs worth backing up.

Failures are isolated at the narrowest scope that still makes sense:
a project whose branches cannot be listed is skipped, a branch whose
connection cannot be resolved is dropped, and a branch whose activity
cannot be determined is kept.
"""

from datetime import datetime, timedelta
from typing import Callable, List

import structlog

from neonvault.config import DEFAULT_DATABASE_NAME
from neonvault.discovery.activity import is_branch_active
from neonvault.discovery.catalog import CatalogClient
from neonvault.exceptions import ConnectionResolutionError, DiscoveryError
from neonvault.models import ActiveResource, Branch, Project

logger = structlog.get_logger()


class ResourceDiscoverer:
    """Find active branches and resolve a connection URI for each."""

    def __init__(
        self,
        catalog: CatalogClient,
        lookback: timedelta = timedelta(days=7),
        preferred_database: str = DEFAULT_DATABASE_NAME,
        clock: Callable[[], datetime] | None = None,
    ):
        self.catalog = catalog
        self.lookback = lookback
        self.preferred_database = preferred_database
        self._clock = clock

    def _now(self) -> datetime | None:
        return self._clock() if self._clock else None

    async def list_projects(self) -> List[Project]:
        """
        List every project visible to the API key.

        Raises:
            DiscoveryError: If the catalog call fails
        """
        try:
            projects = await self.catalog.list_projects()
        except Exception as e:
            raise DiscoveryError(f"Failed to list projects: {e}") from e

        logger.info("projects_discovered", count=len(projects))
        return projects

    async def list_branches(self, project_id: str) -> List[Branch]:
        """
        List the branches of one project.

        Raises:
            DiscoveryError: If the catalog call fails
        """
        try:
            branches = await self.catalog.list_branches(project_id)
        except Exception as e:
            raise DiscoveryError(
                f"Failed to list branches: {e}",
                details={"project_id": project_id},
            ) from e

        logger.info("branches_discovered", project_id=project_id, count=len(branches))
        return branches

    async def resolve_connection(
        self,
        project_id: str,
        branch_id: str,
        preferred_database: str | None = None,
    ) -> str:
        """
        Resolve a connection URI for a branch.

        The first role returned by the catalog is used; Neon lists the
        owner role first. The preferred database is used when the branch
        has it, otherwise the branch's first database.

        Raises:
            ConnectionResolutionError: If the branch has no roles or a
                catalog call fails
        """
        database_name = preferred_database or self.preferred_database
        details = {"project_id": project_id, "branch_id": branch_id}

        try:
            roles = await self.catalog.list_branch_roles(project_id, branch_id)
        except Exception as e:
            raise ConnectionResolutionError(f"Failed to list roles: {e}", details=details) from e

        if not roles:
            raise ConnectionResolutionError(
                f"No roles found for branch {branch_id}", details=details
            )
        role_name = roles[0]
        logger.debug("role_selected", branch_id=branch_id, role=role_name)

        try:
            databases = await self.catalog.list_branch_databases(project_id, branch_id)
        except Exception as e:
            raise ConnectionResolutionError(
                f"Failed to list databases: {e}", details=details
            ) from e

        if databases and database_name not in databases:
            logger.info(
                "preferred_database_missing",
                branch_id=branch_id,
                preferred=database_name,
                using=databases[0],
            )
            database_name = databases[0]

        try:
            return await self.catalog.get_connection_uri(
                project_id, branch_id, database_name, role_name
            )
        except Exception as e:
            raise ConnectionResolutionError(
                f"Failed to get connection URI: {e}", details=details
            ) from e

    async def discover_active_resources(self) -> List[ActiveResource]:
        """
        Walk every project and branch and collect the active ones.

        Results are in catalog enumeration order: project first, then
        branch.

        Raises:
            DiscoveryError: If projects cannot be listed at all
        """
        logger.info(
            "discovery_started",
            lookback_hours=self.lookback.total_seconds() / 3600,
        )
        active: List[ActiveResource] = []

        for project in await self.list_projects():
            try:
                branches = await self.list_branches(project.id)
            except DiscoveryError as e:
                logger.error(
                    "project_skipped",
                    project=project.name,
                    project_id=project.id,
                    error=str(e),
                )
                continue

            for branch in branches:
                resource = await self._check_branch(project, branch)
                if resource is not None:
                    active.append(resource)

        logger.info("discovery_complete", active_resources=len(active))
        return active

    async def _check_branch(self, project: Project, branch: Branch) -> ActiveResource | None:
        try:
            has_activity = is_branch_active(branch, self.lookback, self._now())
        except Exception as e:
            # Activity unknown: keep the branch
            logger.warning(
                "branch_activity_check_failed",
                project=project.name,
                branch=branch.name,
                error=str(e),
            )
            has_activity = True

        if not has_activity:
            logger.info(
                "branch_inactive_skipped",
                project=project.name,
                branch=branch.name,
                updated_at=branch.updated_at,
            )
            return None

        try:
            connection_uri = await self.resolve_connection(project.id, branch.id)
        except ConnectionResolutionError as e:
            logger.error(
                "branch_dropped",
                project=project.name,
                branch=branch.name,
                error=str(e),
            )
            return None

        if not connection_uri:
            logger.error(
                "branch_dropped",
                project=project.name,
                branch=branch.name,
                error="empty connection URI",
            )
            return None

        logger.info("branch_selected", project=project.name, branch=branch.name)
        return ActiveResource(
            project_id=project.id,
            project_name=project.name,
            branch_id=branch.id,
            branch_name=branch.name,
            has_recent_activity=True,
            last_activity_date=branch.updated_at or None,
            connection_uri=connection_uri,
        )
