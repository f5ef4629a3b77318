"""
Overflow routing policy.
"""

from enum import Enum


class Route(Enum):
    PRIMARY = "primary"
    BACKUP = "backup"


def choose(pending_count: int, threshold: int) -> Route:
    """Backup once the primary backlog reaches the threshold, primary otherwise"""
    if pending_count < 0:
        raise ValueError(f"pending_count must be >= 0, got {pending_count}")
    if pending_count >= threshold:
        return Route.BACKUP
    return Route.PRIMARY
