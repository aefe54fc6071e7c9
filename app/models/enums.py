"""
Enums shared by models and services
"""

import enum


class ContestStatus(str, enum.Enum):
    """Contest status enum"""
    UPCOMING = "upcoming"
    LIVE = "live"
    ENDED = "ended"


class SchedulerState(str, enum.Enum):
    """Price-update scheduler state"""
    IDLE = "idle"
    RUNNING = "running"
