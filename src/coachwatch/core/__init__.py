"""
Coachwatch Core - Foundation modules for the coach camera detector.

This module contains the fundamental components:
- constants: Team numbers, observer modes and detection thresholds
- config: Application configuration management
- schemas: Data contracts for module boundaries
"""

from coachwatch.core.constants import (
    DISCONNECT_GRACE_MS,
    IN_EYE_GRACE_MS,
    PLAYING_SIDES,
    TEAM_TAGS,
    ObserverMode,
    RoundPhase,
    Team,
)
from coachwatch.core.schemas import (
    GameStateView,
    MatchEvent,
    ObserverModeChanged,
    PlayerDisconnected,
    PlayerSnapshot,
    RoundEnd,
    RoundFreezetimeEnd,
    ViolationRecord,
    get_team_tag,
)

__all__ = [
    # Enums
    "ObserverMode",
    "RoundPhase",
    "Team",
    # Constants
    "DISCONNECT_GRACE_MS",
    "IN_EYE_GRACE_MS",
    "PLAYING_SIDES",
    "TEAM_TAGS",
    # Schemas (data contracts)
    "GameStateView",
    "MatchEvent",
    "ObserverModeChanged",
    "PlayerDisconnected",
    "PlayerSnapshot",
    "RoundEnd",
    "RoundFreezetimeEnd",
    "ViolationRecord",
    "get_team_tag",
]
