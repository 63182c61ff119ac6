"""Tests for the demoparser2 wrapper and event stream."""

import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch
import numpy as np
import pandas as pd

from coachwatch.core.config import ParserConfig
from coachwatch.core.schemas import (
    ObserverModeChanged,
    PlayerDisconnected,
    RoundEnd,
    RoundFreezetimeEnd,
)
from coachwatch.game_state import GameState
from coachwatch.parser import (
    DemoData,
    DemoParser,
    build_events,
    coalesce_observer_mode,
    parse_demo,
    reduce_to_changes,
)

CONFIG = ParserConfig()
PLAYER_PAWN_PROP, OBSERVER_PAWN_PROP = CONFIG.observer_mode_props


def _raw_ticks() -> pd.DataFrame:
    """Tick table as demoparser2 returns it, before column renaming."""
    return pd.DataFrame({
        "tick": [1, 1, 2, 2, 3, 3],
        "steamid": [10, 20, 10, 20, 10, 20],
        "name": ["coach", "player", "coach", "player", "coach", "player"],
        "team_num": [1, 2, 1, 2, 1, 2],
        "is_alive": [False, True, False, True, False, True],
        "is_connected": [True] * 6,
        "total_rounds_played": [0] * 6,
        CONFIG.coaching_team_prop: [2, 0, 2, 0, 2, 0],
        OBSERVER_PAWN_PROP: [2, np.nan, 2, np.nan, 1, np.nan],
        PLAYER_PAWN_PROP: [np.nan] * 6,
    })


def _renamed_ticks() -> pd.DataFrame:
    renamed = _raw_ticks().rename(columns={
        "steamid": "steam_id",
        "team_num": "team",
        CONFIG.coaching_team_prop: "coaching_team",
    })
    return coalesce_observer_mode(renamed, CONFIG.observer_mode_props)


class TestReduceToChanges:
    """Tests for per-player change detection."""

    def test_keeps_first_row_and_changes(self):
        """Test unchanged rows are dropped."""
        updates = reduce_to_changes(_renamed_ticks())
        assert list(zip(updates["tick"], updates["steam_id"])) == [(1, 10), (1, 20), (3, 10)]

    def test_observer_changed_flag(self):
        """Test camera changes are flagged, absent values are not."""
        updates = reduce_to_changes(_renamed_ticks())
        flags = dict(zip(zip(updates["tick"], updates["steam_id"]), updates["observer_changed"]))
        assert flags[(1, 10)]
        assert not flags[(1, 20)]
        assert flags[(3, 10)]

    def test_empty_frame(self):
        """Test an empty tick table produces no updates."""
        updates = reduce_to_changes(pd.DataFrame(columns=["tick", "steam_id"]))
        assert updates.empty
        assert "observer_changed" in updates.columns


class TestCoalesceObserverMode:
    """Tests for merging the observer mode candidate columns."""

    def test_first_non_null_wins(self):
        """Test candidates are taken in configured order, later ones fill gaps."""
        df = pd.DataFrame({
            "steam_id": [10, 20, 30],
            PLAYER_PAWN_PROP: [1, np.nan, np.nan],
            OBSERVER_PAWN_PROP: [2, 5, np.nan],
        })
        merged = coalesce_observer_mode(df, CONFIG.observer_mode_props)

        assert list(merged.columns) == ["steam_id", "observer_mode"]
        assert merged["observer_mode"].iloc[0] == 1
        assert merged["observer_mode"].iloc[1] == 5
        assert pd.isna(merged["observer_mode"].iloc[2])

    def test_single_candidate_present(self):
        """Test a recording exposing only one of the properties."""
        df = pd.DataFrame({"steam_id": [10], PLAYER_PAWN_PROP: [3]})
        merged = coalesce_observer_mode(df, CONFIG.observer_mode_props)
        assert merged["observer_mode"].tolist() == [3]

    def test_no_candidate_present(self):
        """Test the frame is returned untouched when no property was decoded."""
        df = pd.DataFrame({"steam_id": [10]})
        merged = coalesce_observer_mode(df, CONFIG.observer_mode_props)
        assert "observer_mode" not in merged.columns


class TestBuildEvents:
    """Tests for typed event construction."""

    def test_list_of_tuples(self):
        """Test demoparser2's list-of-tuples event output."""
        raw = [
            ("round_freeze_end", pd.DataFrame({"tick": [500]})),
            ("round_end", pd.DataFrame({"tick": [400], "winner": [3]})),
            ("player_disconnect", pd.DataFrame({"tick": [450], "user_steamid": ["76561198000000001"]})),
        ]
        events = build_events(raw)
        assert events == [
            RoundEnd(tick=400, winner=3),
            PlayerDisconnected(tick=450, steam_id=76561198000000001),
            RoundFreezetimeEnd(tick=500),
        ]

    def test_dict_output(self):
        """Test dict-of-records event output."""
        raw = {"round_end": [{"tick": 10, "winner": "CT"}]}
        assert build_events(raw) == [RoundEnd(tick=10, winner=None)]

    def test_same_tick_order(self):
        """Test a round end sorts before a freeze end on the same tick."""
        raw = {
            "round_freeze_end": [{"tick": 100}],
            "round_end": [{"tick": 100}],
        }
        events = build_events(raw)
        assert isinstance(events[0], RoundEnd)
        assert isinstance(events[1], RoundFreezetimeEnd)

    def test_disconnect_without_steamid_is_skipped(self):
        """Test bot disconnects without a steam id are dropped."""
        raw = {"player_disconnect": [{"tick": 5, "user_steamid": None}]}
        assert build_events(raw) == []

    def test_none(self):
        """Test missing event output."""
        assert build_events(None) == []


class TestDemoDataStream:
    """Tests for DemoData.iter_events."""

    @pytest.fixture
    def demo_data(self):
        return DemoData(
            file_path=Path("/test/demo.dem"),
            map_name="de_nuke",
            tick_rate=64,
            player_updates=reduce_to_changes(_renamed_ticks()),
            events=[RoundFreezetimeEnd(tick=2), PlayerDisconnected(tick=3, steam_id=10)],
        )

    def test_event_order(self, demo_data):
        """Test camera changes precede game events on the same tick."""
        events = list(demo_data.iter_events(GameState(tick_rate=64)))
        assert events == [
            ObserverModeChanged(tick=1, steam_id=10, new_mode=2),
            RoundFreezetimeEnd(tick=2),
            ObserverModeChanged(tick=3, steam_id=10, new_mode=1),
            PlayerDisconnected(tick=3, steam_id=10),
        ]

    def test_state_is_current_when_event_is_seen(self, demo_data):
        """Test the game state reflects the tick of each event."""
        game = GameState(tick_rate=64)
        seen = []
        for event in demo_data.iter_events(game):
            player = game.player(10)
            seen.append((event.tick, game.tick, player.observer_mode, player.is_connected))

        assert seen == [
            (1, 1, 2, True),
            (2, 2, 2, True),
            (3, 3, 1, True),
            (3, 3, 1, True),
        ]
        assert game.player(10).is_connected is False

    def test_duration(self, demo_data):
        """Test duration from the last update tick."""
        assert demo_data.duration_seconds == pytest.approx(3 / 64)


class TestDemoParser:
    """Tests for DemoParser."""

    def test_init_with_nonexistent_file(self):
        """Test initializing parser with nonexistent file."""
        with pytest.raises(FileNotFoundError, match="Demo file not found"):
            DemoParser("/nonexistent/path/demo.dem")

    def test_init_with_directory(self, tmp_path):
        """Test a directory is rejected."""
        with pytest.raises(ValueError, match="got a directory"):
            DemoParser(tmp_path)

    @patch('coachwatch.parser.Demoparser2', None)
    def test_parse_without_demoparser2(self, tmp_path):
        """Test parsing when demoparser2 is not installed."""
        demo_file = tmp_path / "test.dem"
        demo_file.write_bytes(b"demo content")

        with pytest.raises(ImportError, match="demoparser2 is required"):
            DemoParser(demo_file).parse()

    @patch('coachwatch.parser.Demoparser2')
    def test_parse(self, mock_demoparser2, tmp_path):
        """Test a full parse with a mocked decoder."""
        demo_file = tmp_path / "test.dem"
        demo_file.write_bytes(b"demo content")

        mock_parser = MagicMock()
        mock_parser.parse_header.return_value = {"map_name": "de_mirage", "tickrate": "128"}
        mock_parser.parse_ticks.return_value = _raw_ticks()
        mock_parser.parse_events.return_value = [
            ("round_freeze_end", pd.DataFrame({"tick": [2]})),
        ]
        mock_demoparser2.return_value = mock_parser

        result = DemoParser(demo_file).parse()

        assert result.map_name == "de_mirage"
        assert result.tick_rate == 128
        assert len(result.player_updates) == 3
        assert result.events == [RoundFreezetimeEnd(tick=2)]

        requested = mock_parser.parse_ticks.call_args[0][0]
        assert CONFIG.coaching_team_prop in requested
        assert OBSERVER_PAWN_PROP in requested
        assert PLAYER_PAWN_PROP in requested

    @patch('coachwatch.parser.Demoparser2')
    def test_parse_caches_result(self, mock_demoparser2, tmp_path):
        """Test that parsing caches the result."""
        demo_file = tmp_path / "test.dem"
        demo_file.write_bytes(b"demo content")

        mock_parser = MagicMock()
        mock_parser.parse_header.return_value = {"map_name": "de_dust2"}
        mock_parser.parse_ticks.return_value = _raw_ticks()
        mock_parser.parse_events.return_value = []
        mock_demoparser2.return_value = mock_parser

        parser = DemoParser(demo_file)
        result1 = parser.parse()
        result2 = parser.parse()

        assert result1 is result2
        assert result1.tick_rate == 64
        assert mock_demoparser2.call_count == 1

    @patch('coachwatch.parser.Demoparser2')
    def test_decode_error_propagates(self, mock_demoparser2, tmp_path):
        """Test a decoder failure is raised unchanged."""
        demo_file = tmp_path / "test.dem"
        demo_file.write_bytes(b"truncated")

        mock_parser = MagicMock()
        mock_parser.parse_header.return_value = {}
        mock_parser.parse_ticks.side_effect = RuntimeError("unexpected end of demo")
        mock_demoparser2.return_value = mock_parser

        with pytest.raises(RuntimeError, match="unexpected end of demo"):
            parse_demo(demo_file)

    @patch('coachwatch.parser.Demoparser2')
    def test_unknown_observer_prop_is_dropped(self, mock_demoparser2, tmp_path):
        """Test tick parsing is retried without a rejected observer property."""
        demo_file = tmp_path / "test.dem"
        demo_file.write_bytes(b"demo content")

        mock_parser = MagicMock()
        mock_parser.parse_header.return_value = {}
        mock_parser.parse_ticks.side_effect = [
            RuntimeError("unknown field"),
            _raw_ticks().drop(columns=[OBSERVER_PAWN_PROP]).assign(
                **{PLAYER_PAWN_PROP: [2, np.nan, 2, np.nan, 1, np.nan]}
            ),
        ]
        mock_parser.parse_events.return_value = []
        mock_demoparser2.return_value = mock_parser

        result = DemoParser(demo_file).parse()

        assert mock_parser.parse_ticks.call_count == 2
        retried = mock_parser.parse_ticks.call_args_list[1][0][0]
        assert PLAYER_PAWN_PROP in retried
        assert OBSERVER_PAWN_PROP not in retried
        assert result.player_updates["observer_changed"].sum() == 2

    @patch('coachwatch.parser.Demoparser2')
    def test_required_fields_error_propagates(self, mock_demoparser2, tmp_path):
        """Test the decoder error surfaces once no optional property is left."""
        demo_file = tmp_path / "test.dem"
        demo_file.write_bytes(b"demo content")

        mock_parser = MagicMock()
        mock_parser.parse_header.return_value = {}
        mock_parser.parse_ticks.side_effect = RuntimeError("unknown field")
        mock_demoparser2.return_value = mock_parser

        with pytest.raises(RuntimeError, match="unknown field"):
            DemoParser(demo_file).parse()

        assert mock_parser.parse_ticks.call_count == 1 + len(CONFIG.observer_mode_props)
        assert mock_parser.parse_ticks.call_args[0][0] == CONFIG.tick_fields + [CONFIG.coaching_team_prop]
