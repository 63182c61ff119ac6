"""
Demo Parser Wrapper for CS Replay Files

Wraps demoparser2 to turn a .dem file into the chronological event stream the
coach camera state machine consumes: round boundaries, disconnects and
spectator camera-mode changes, with a live GameState advanced alongside.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional
import logging

import pandas as pd

from coachwatch.core.config import ParserConfig
from coachwatch.core.constants import (
    DEFAULT_TICK_RATE,
    PLAYER_DISCONNECT_EVENT,
    ROUND_END_EVENT,
    ROUND_FREEZE_END_EVENT,
)
from coachwatch.core.schemas import (
    MatchEvent,
    ObserverModeChanged,
    PlayerDisconnected,
    RoundEnd,
    RoundFreezetimeEnd,
)
from coachwatch.game_state import GameState

try:
    from demoparser2 import DemoParser as Demoparser2
except ImportError:
    Demoparser2 = None  # type: ignore

logger = logging.getLogger(__name__)

# Player columns tracked for changes, after renaming
TRACKED_COLUMNS = [
    "name",
    "team",
    "coaching_team",
    "observer_mode",
    "is_alive",
    "is_connected",
    "total_rounds_played",
]

# Columns that may carry the disconnecting player's steam id
DISCONNECT_STEAMID_COLUMNS = ["user_steamid", "userid_steamid", "steamid"]

# Order of game events that share a tick: a round ends before the next starts
EVENT_ORDER = {
    ROUND_END_EVENT: 0,
    PLAYER_DISCONNECT_EVENT: 1,
    ROUND_FREEZE_END_EVENT: 2,
}


@dataclass
class DemoData:
    """Parsed demo data container."""

    file_path: Path
    map_name: str
    tick_rate: int

    # One row per (tick, steam_id) where a tracked property changed
    player_updates: pd.DataFrame

    # Game events sorted by tick
    events: list[MatchEvent] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.player_updates.empty or self.tick_rate <= 0:
            return 0.0
        return float(self.player_updates["tick"].max()) / self.tick_rate

    def iter_events(self, game: GameState) -> Iterator[MatchEvent]:
        """
        Replay the demo in tick order, advancing ``game`` as it goes.

        At each tick every player update is applied first, then one
        ObserverModeChanged is yielded per camera change, then the game
        events of that tick. A disconnected player is marked as such only
        after the consumer has handled the PlayerDisconnected event.
        """
        updates_by_tick: dict[int, pd.DataFrame] = {}
        if not self.player_updates.empty:
            updates_by_tick = {
                int(tick): frame
                for tick, frame in self.player_updates.groupby("tick", sort=True)
            }

        events_by_tick: dict[int, list[MatchEvent]] = defaultdict(list)
        for event in self.events:
            events_by_tick[event.tick].append(event)

        for tick in sorted(set(updates_by_tick) | set(events_by_tick)):
            game.advance(tick)

            frame = updates_by_tick.get(tick)
            if frame is not None:
                yield from _apply_frame(tick, frame, game)

            for event in events_by_tick.get(tick, []):
                yield event
                if isinstance(event, PlayerDisconnected):
                    game.disconnect(event.steam_id)


def _apply_frame(tick: int, frame: pd.DataFrame, game: GameState) -> list[ObserverModeChanged]:
    """Apply one tick of player updates and collect the camera changes."""
    changes = []
    for row in frame.to_dict("records"):
        steam_id = int(row["steam_id"])
        game.set_total_rounds_played(row.get("total_rounds_played"))
        player = game.apply_update(steam_id, row)

        if row.get("observer_changed") and player.observer_mode is not None:
            changes.append(
                ObserverModeChanged(tick=tick, steam_id=steam_id, new_mode=player.observer_mode)
            )
    return changes


def reduce_to_changes(ticks_df: pd.DataFrame) -> pd.DataFrame:
    """
    Keep only rows where a tracked value differs from the player's previous row.

    Adds a boolean ``observer_changed`` column. The first known value of a
    property counts as a change.
    """
    tracked = [c for c in TRACKED_COLUMNS if c in ticks_df.columns]
    if ticks_df.empty or not tracked:
        result = ticks_df.copy()
        result["observer_changed"] = False
        return result

    df = ticks_df.dropna(subset=["steam_id"]).sort_values(["steam_id", "tick"], kind="stable")
    previous = df.groupby("steam_id")[tracked].shift()

    current = df[tracked]
    differs = current.ne(previous) & ~(current.isna() & previous.isna())
    changed = differs.any(axis=1)

    if "observer_mode" in df.columns:
        df = df.assign(observer_changed=differs["observer_mode"] & current["observer_mode"].notna())
    else:
        df = df.assign(observer_changed=False)

    return df[changed].sort_values(["tick", "steam_id"], kind="stable").reset_index(drop=True)


def _events_to_records(raw: Any) -> dict[str, list[dict]]:
    """Normalize demoparser2 event output (list of tuples or dict) to records."""
    if raw is None:
        return {}

    if isinstance(raw, dict):
        items = raw.items()
    else:
        items = raw

    records: dict[str, list[dict]] = {}
    for name, value in items:
        if isinstance(value, pd.DataFrame):
            value = value.to_dict("records")
        records[name] = [e for e in value if isinstance(e, dict)]
    return records


def _first_present(record: dict, columns: list[str]) -> Optional[Any]:
    for column in columns:
        value = record.get(column)
        if value is not None and not pd.isna(value):
            return value
    return None


def build_events(raw_events: Any) -> list[MatchEvent]:
    """Turn raw demoparser2 game events into typed, tick-ordered events."""
    records = _events_to_records(raw_events)
    keyed: list[tuple[int, int, MatchEvent]] = []

    for e in records.get(ROUND_FREEZE_END_EVENT, []):
        tick = int(e.get("tick", 0))
        keyed.append((tick, EVENT_ORDER[ROUND_FREEZE_END_EVENT], RoundFreezetimeEnd(tick=tick)))

    for e in records.get(ROUND_END_EVENT, []):
        tick = int(e.get("tick", 0))
        winner = e.get("winner")
        if isinstance(winner, str) or winner is None or pd.isna(winner):
            winner = None
        else:
            winner = int(winner)
        keyed.append((tick, EVENT_ORDER[ROUND_END_EVENT], RoundEnd(tick=tick, winner=winner)))

    for e in records.get(PLAYER_DISCONNECT_EVENT, []):
        tick = int(e.get("tick", 0))
        steam_id = _first_present(e, DISCONNECT_STEAMID_COLUMNS)
        if steam_id is None:
            logger.debug(f"Skipping disconnect without steam id at tick {tick}")
            continue
        keyed.append(
            (
                tick,
                EVENT_ORDER[PLAYER_DISCONNECT_EVENT],
                PlayerDisconnected(tick=tick, steam_id=int(steam_id)),
            )
        )

    keyed.sort(key=lambda item: (item[0], item[1]))
    return [event for _, _, event in keyed]


class DemoParser:
    """
    Parser for CS demo files.

    Wraps demoparser2 and produces a DemoData whose event stream drives the
    coach camera state machine.
    """

    def __init__(self, demo_path: str | Path, config: Optional[ParserConfig] = None):
        """
        Initialize the parser with a demo file path.

        Args:
            demo_path: Path to the .dem file
            config: Property and event names to read
        """
        self.demo_path = Path(demo_path)
        if not self.demo_path.exists():
            raise FileNotFoundError(f"Demo file not found: {demo_path}")
        if not self.demo_path.is_file():
            raise ValueError(f"Expected a demo file, got a directory: {demo_path}")

        self.config = config or ParserConfig()
        self._parser: Optional[Any] = None
        self._data: Optional[DemoData] = None

    def parse(self) -> DemoData:
        """
        Parse the demo file.

        Decoder errors raised by demoparser2 propagate unchanged: a partially
        decoded recording cannot be trusted to keep event order.
        """
        if self._data is not None:
            return self._data

        if Demoparser2 is None:
            raise ImportError(
                "demoparser2 is required but not installed. "
                "Install with: pip install demoparser2"
            )

        logger.info(f"Parsing demo: {self.demo_path}")
        self._parser = Demoparser2(str(self.demo_path))

        header = self._parser.parse_header() or {}
        map_name = header.get("map_name", "unknown") if isinstance(header, dict) else "unknown"
        tick_rate = DEFAULT_TICK_RATE
        if isinstance(header, dict) and header.get("tickrate"):
            tick_rate = int(float(header["tickrate"]))

        cfg = self.config
        ticks_df = self._parse_ticks()
        ticks_df = ticks_df.rename(
            columns={
                "steamid": "steam_id",
                "team_num": "team",
                cfg.coaching_team_prop: "coaching_team",
            }
        )
        ticks_df = coalesce_observer_mode(ticks_df, cfg.observer_mode_props)
        for column in ("coaching_team", "observer_mode"):
            if column not in ticks_df.columns:
                logger.warning(f"Demo has no '{column}' values; treating it as absent")

        player_updates = reduce_to_changes(ticks_df)
        events = build_events(self._parser.parse_events(cfg.parse_events))

        self._data = DemoData(
            file_path=self.demo_path,
            map_name=map_name,
            tick_rate=tick_rate,
            player_updates=player_updates,
            events=events,
        )

        logger.info(
            f"Parsed {len(player_updates)} player updates and {len(events)} events "
            f"({self._data.duration_seconds:.1f}s) on {map_name}"
        )
        return self._data

    def _parse_ticks(self) -> pd.DataFrame:
        """
        Request the tick table, dropping observer mode candidates the
        recording does not know about.

        The last attempt asks for the required fields only, and its error
        propagates.
        """
        cfg = self.config
        required = cfg.tick_fields + [cfg.coaching_team_prop]
        candidates = list(cfg.observer_mode_props)

        while True:
            try:
                return self._parser.parse_ticks(required + candidates)
            except Exception as e:
                if not candidates:
                    raise
                dropped = candidates.pop()
                logger.warning(f"Tick parsing failed ({e}), retrying without '{dropped}'")


def coalesce_observer_mode(ticks_df: pd.DataFrame, props: list[str]) -> pd.DataFrame:
    """
    Merge the observer mode candidate columns into one ``observer_mode``
    column, taking the first non-null value of each row in ``props`` order.
    """
    present = [p for p in props if p in ticks_df.columns]
    if not present:
        return ticks_df

    merged = ticks_df[present].bfill(axis=1).iloc[:, 0]
    return ticks_df.drop(columns=present).assign(observer_mode=merged)


def parse_demo(demo_path: str | Path) -> DemoData:
    """
    Convenience function to parse a demo file.

    Args:
        demo_path: Path to the .dem file

    Returns:
        DemoData containing the event stream
    """
    parser = DemoParser(demo_path)
    return parser.parse()
