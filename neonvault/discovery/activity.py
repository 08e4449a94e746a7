# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Activity filter - decide whether a branch changed recently enough to back up.

The only signal is the branch's updated_at timestamp. When it cannot be
read the branch is treated as active.
"""

from datetime import datetime, timedelta, UTC

import structlog

from neonvault.models import Branch, parse_timestamp

logger = structlog.get_logger()


def activity_cutoff(lookback: timedelta, now: datetime | None = None) -> datetime:
    """Return the oldest updated_at that still counts as active."""
    return (now or datetime.now(UTC)) - lookback


def is_branch_active(
    branch: Branch,
    lookback: timedelta,
    now: datetime | None = None,
) -> bool:
    """
    Check whether a branch was updated within the lookback window.

    The boundary is inclusive: a branch updated exactly at now - lookback
    is active.

    Args:
        branch: Branch to check
        lookback: Activity window
        now: Reference time (default: current UTC time)

    Returns:
        True if the branch is active or its timestamp is unreadable
    """
    cutoff = activity_cutoff(lookback, now)

    try:
        updated_at = parse_timestamp(branch.updated_at)
    except (TypeError, ValueError) as e:
        logger.warning(
            "branch_activity_unknown_assuming_active",
            branch=branch.name,
            updated_at=branch.updated_at,
            error=str(e),
        )
        return True

    active = updated_at >= cutoff
    logger.debug(
        "branch_activity_checked",
        branch=branch.name,
        updated_at=branch.updated_at,
        active=active,
    )
    return active
