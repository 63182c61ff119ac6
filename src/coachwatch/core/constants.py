"""
Coachwatch - Constants

Defines team numbers, observer (spectator camera) modes and the default
detection thresholds used by the coach camera state machine.
"""

from enum import Enum


class Team(int, Enum):
    """CS team numbers."""

    UNASSIGNED = 0
    SPECTATOR = 1
    TERRORIST = 2
    CT = 3


class ObserverMode(int, Enum):
    """
    Spectator camera modes (CS2 ObserverMode_t) as demoparser2 reports them.

    Only FIXED and IN_EYE matter to the detector; the rest are listed so
    log output can name every value the recording may carry.
    """

    NONE = 0  # Not spectating
    FIXED = 1  # View from a fixed camera position
    IN_EYE = 2  # Follow a player in first person
    CHASE = 3  # Follow a player in third person
    ROAMING = 4  # Free roaming
    DIRECTED = 5  # Camera driven by the director


def get_mode_name(mode: int) -> str:
    """Name of an observer mode value, the raw number when unrecognized."""
    try:
        return ObserverMode(mode).name
    except ValueError:
        return str(mode)


class RoundPhase(str, Enum):
    """Lifecycle of the round currently being tracked."""

    NOT_STARTED = "not_started"
    ACTIVE = "active"
    ENDED = "ended"


# Sides a coach can legitimately be assigned to
PLAYING_SIDES = frozenset({Team.TERRORIST, Team.CT})

# Tags printed in violation lines, keyed by coaching team number
TEAM_TAGS = {
    Team.UNASSIGNED: "UNASSIGNED",
    Team.SPECTATOR: "SPEC",
    Team.TERRORIST: "T",
    Team.CT: "CT",
}
UNKNOWN_TEAM_TAG = "UNKNOWN"

# In-eye switches this soon after freezetime end retract a suspicion
IN_EYE_GRACE_MS = 500.0

# Disconnects this soon after freezetime end are not reported
DISCONNECT_GRACE_MS = 10_000.0

# Tick rate assumed when the demo header does not carry one
DEFAULT_TICK_RATE = 64

# Game events the detector consumes
ROUND_FREEZE_END_EVENT = "round_freeze_end"
ROUND_END_EVENT = "round_end"
PLAYER_DISCONNECT_EVENT = "player_disconnect"
