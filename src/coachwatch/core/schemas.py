"""
Coachwatch Data Contracts

Every data structure that crosses a module boundary is defined here.

Producers: parser.py (events), game_state.py (player snapshots),
state_machine.py (violation records)
Consumers: state_machine.py, analyzer.py, cli.py
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol, Union

from coachwatch.core.constants import TEAM_TAGS, UNKNOWN_TEAM_TAG, Team

# ============================================================
# MATCH EVENTS (delivered in match-chronological order)
# ============================================================


@dataclass(frozen=True)
class RoundFreezetimeEnd:
    """Freeze period is over and live play begins; marks round start."""

    tick: int


@dataclass(frozen=True)
class RoundEnd:
    """A round has ended."""

    tick: int
    winner: int | None = None


@dataclass(frozen=True)
class PlayerDisconnected:
    """A player left the server."""

    tick: int
    steam_id: int


@dataclass(frozen=True)
class ObserverModeChanged:
    """A player's spectator camera mode changed to ``new_mode``."""

    tick: int
    steam_id: int
    new_mode: int


MatchEvent = Union[RoundFreezetimeEnd, RoundEnd, PlayerDisconnected, ObserverModeChanged]


# ============================================================
# GAME STATE
# ============================================================


@dataclass
class PlayerSnapshot:
    """Current property values of one player; ``None`` means the property is absent."""

    steam_id: int
    name: str = "Unknown"
    team: int | None = None
    coaching_team: int | None = None
    is_alive: bool = False
    observer_mode: int | None = None
    is_connected: bool = True


class GameStateView(Protocol):
    """Read-only view of the live game state the state machine queries."""

    @property
    def current_time(self) -> float:
        """Current match time in seconds."""
        ...

    @property
    def total_rounds_played(self) -> int: ...

    def player(self, steam_id: int) -> PlayerSnapshot | None: ...

    def connected_players(self) -> Iterable[PlayerSnapshot]: ...

    def team_members(self, team: int) -> Iterable[PlayerSnapshot]: ...


# ============================================================
# VIOLATIONS
# ============================================================


def get_team_tag(team: int) -> str:
    """Short tag for a team number, UNKNOWN for anything unrecognized."""
    try:
        return TEAM_TAGS[Team(team)]
    except ValueError:
        return UNKNOWN_TEAM_TAG


@dataclass(frozen=True)
class ViolationRecord:
    """A coach caught in fixed camera mode while their side was still alive."""

    round_number: int
    coaching_team: int
    player_name: str
    steam_id: int

    @property
    def team_tag(self) -> str:
        return get_team_tag(self.coaching_team)

    def format_line(self) -> str:
        """Render the record as the report line printed by the CLI."""
        return (
            f"Round: {self.round_number}, Busta: "
            f"[{self.team_tag}]{self.player_name} ({self.steam_id})"
        )
