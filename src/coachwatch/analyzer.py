"""
Coach camera analysis driver.

Feeds the demo's event stream through the state machine one event at a time
and hands every confirmed violation to a callback as soon as it is produced.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from coachwatch.core.config import DetectionConfig, get_config
from coachwatch.core.schemas import (
    GameStateView,
    MatchEvent,
    ObserverModeChanged,
    PlayerDisconnected,
    RoundEnd,
    RoundFreezetimeEnd,
    ViolationRecord,
)
from coachwatch.game_state import GameState
from coachwatch.parser import DemoData, DemoParser
from coachwatch.state_machine import (
    DetectorState,
    initial_state,
    on_camera_mode_change,
    on_disconnect,
    on_round_end,
    on_round_start,
)

logger = logging.getLogger(__name__)

ViolationCallback = Callable[[ViolationRecord], None]

_HANDLERS = {
    RoundFreezetimeEnd: on_round_start,
    RoundEnd: on_round_end,
    PlayerDisconnected: on_disconnect,
    ObserverModeChanged: on_camera_mode_change,
}


class CoachAnalyzer:
    """
    Holds the detector state for one analysis run.

    Usage:
        analyzer = CoachAnalyzer()
        violations = analyzer.analyze(demo_data, on_violation=print)
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or get_config().detection
        self.state: Optional[DetectorState] = None

    def process(self, event: MatchEvent, game: GameStateView) -> tuple[ViolationRecord, ...]:
        """Dispatch a single event and return the violations it produced."""
        if self.state is None:
            self.state = initial_state(game)

        handler = _HANDLERS.get(type(event))
        if handler is None:
            logger.debug(f"No handler for {type(event).__name__}")
            return ()

        logger.debug(f"t={game.current_time:.3f}s {event}")
        self.state, violations = handler(self.state, event, game, self.config)
        return violations

    def analyze(
        self,
        demo_data: DemoData,
        on_violation: Optional[ViolationCallback] = None,
    ) -> list[ViolationRecord]:
        """Run the whole event stream and return every violation found."""
        game = GameState(tick_rate=demo_data.tick_rate)
        self.state = initial_state(game)

        found: list[ViolationRecord] = []
        for event in demo_data.iter_events(game):
            for violation in self.process(event, game):
                found.append(violation)
                if on_violation is not None:
                    on_violation(violation)

        logger.info(f"Analysis finished: {len(found)} violation(s)")
        return found


def analyze_demo(
    demo_path: str | Path,
    on_violation: Optional[ViolationCallback] = None,
    config: Optional[DetectionConfig] = None,
) -> list[ViolationRecord]:
    """
    Parse a demo and report coaches abusing the fixed camera.

    Args:
        demo_path: Path to the .dem file
        on_violation: Called with each violation as soon as it is confirmed
        config: Detection thresholds (global config when omitted)

    Returns:
        All violations in the order they were confirmed
    """
    parser = DemoParser(demo_path, config=get_config().parser)
    data = parser.parse()
    return CoachAnalyzer(config).analyze(data, on_violation=on_violation)
