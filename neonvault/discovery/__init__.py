# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Discovery Layer - Find Neon branches with recent write activity.
"""

from neonvault.discovery.activity import activity_cutoff, is_branch_active
from neonvault.discovery.catalog import CatalogClient, NeonCatalogClient
from neonvault.discovery.discoverer import ResourceDiscoverer

__all__ = [
    "activity_cutoff",
    "is_branch_active",
    "CatalogClient",
    "NeonCatalogClient",
    "ResourceDiscoverer",
]
