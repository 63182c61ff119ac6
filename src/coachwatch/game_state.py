"""
Live game state advanced tick by tick while the demo is replayed.

Holds the latest known property values for every player seen so far and
answers the queries the state machine makes (roster, alive status,
coaching assignment, match clock).
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

import numpy as np
import pandas as pd

from coachwatch.core.constants import DEFAULT_TICK_RATE
from coachwatch.core.schemas import PlayerSnapshot

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> Optional[int]:
    """Convert a cell value to int, mapping missing/NaN to None."""
    if value is None:
        return None
    if isinstance(value, (float, np.floating)) and np.isnan(value):
        return None
    if value is pd.NA:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None or value is pd.NA:
        return default
    if isinstance(value, (float, np.floating)) and np.isnan(value):
        return default
    return bool(value)


class GameState:
    """
    Mutable table of player snapshots keyed by steam id.

    Usage:
        state = GameState(tick_rate=64)
        state.advance(tick)
        state.apply_update(steam_id, {"team": 1, "observer_mode": 3})
    """

    def __init__(self, tick_rate: int = DEFAULT_TICK_RATE):
        self.tick_rate = tick_rate if tick_rate > 0 else DEFAULT_TICK_RATE
        self.tick = 0
        self._total_rounds_played = 0
        self._players: dict[int, PlayerSnapshot] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_time(self) -> float:
        """Current match time in seconds."""
        return self.tick / self.tick_rate

    @property
    def total_rounds_played(self) -> int:
        return self._total_rounds_played

    def player(self, steam_id: int) -> Optional[PlayerSnapshot]:
        return self._players.get(steam_id)

    def connected_players(self) -> Iterator[PlayerSnapshot]:
        return (p for p in self._players.values() if p.is_connected)

    def team_members(self, team: int) -> Iterator[PlayerSnapshot]:
        return (p for p in self.connected_players() if p.team == team)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def advance(self, tick: int) -> None:
        """Move the clock forward. Ticks never go backwards."""
        if tick < self.tick:
            logger.warning(f"Ignoring tick {tick} older than current tick {self.tick}")
            return
        self.tick = tick

    def set_total_rounds_played(self, value: Any) -> None:
        rounds = _as_int(value)
        if rounds is not None:
            self._total_rounds_played = rounds

    def apply_update(self, steam_id: int, values: dict[str, Any]) -> PlayerSnapshot:
        """
        Apply new property values for one player.

        Keys follow PlayerSnapshot field names; missing or NaN values are
        stored as None (or the field default for booleans).
        """
        player = self._players.get(steam_id)
        if player is None:
            player = PlayerSnapshot(steam_id=steam_id)
            self._players[steam_id] = player

        if "name" in values and isinstance(values["name"], str):
            player.name = values["name"]
        if "team" in values:
            player.team = _as_int(values["team"])
        if "coaching_team" in values:
            player.coaching_team = _as_int(values["coaching_team"])
        if "observer_mode" in values:
            player.observer_mode = _as_int(values["observer_mode"])
        if "is_alive" in values:
            player.is_alive = _as_bool(values["is_alive"])
        if "is_connected" in values:
            player.is_connected = _as_bool(values["is_connected"], default=True)

        return player

    def disconnect(self, steam_id: int) -> None:
        player = self._players.get(steam_id)
        if player is not None:
            player.is_connected = False
