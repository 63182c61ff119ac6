"""
Coach Camera State Machine

Detects coaches who switch their spectator camera into the fixed camera mode
while the side they coach still has living players.

Architecture:
- Round tracking from freezetime-end / round-end events
- A suspect set of steam ids, cleared and seeded at every round start
- Camera-mode transitions raise or retract suspicion
- Round end and disconnects confirm suspicion into violation records

Every transition is a pure function taking the current DetectorState, the
event and a read-only game state view, and returning the new state together
with the violation records the event produced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from coachwatch.core.config import DetectionConfig
from coachwatch.core.constants import PLAYING_SIDES, RoundPhase, Team, get_mode_name
from coachwatch.core.schemas import (
    GameStateView,
    ObserverModeChanged,
    PlayerDisconnected,
    PlayerSnapshot,
    RoundEnd,
    RoundFreezetimeEnd,
    ViolationRecord,
    get_team_tag,
)

logger = logging.getLogger(__name__)

Transition = tuple["DetectorState", tuple[ViolationRecord, ...]]


# ============================================================================
# DATA STRUCTURES - State Tracking
# ============================================================================


@dataclass(frozen=True)
class RoundInfo:
    """The round currently being tracked. Replaced at each boundary event."""

    number: int = 1
    phase: RoundPhase = RoundPhase.NOT_STARTED
    start_time: float = 0.0  # seconds

    @property
    def is_active(self) -> bool:
        return self.phase is RoundPhase.ACTIVE

    def elapsed_ms(self, current_time: float) -> float:
        """Milliseconds since freezetime end."""
        return (current_time - self.start_time) * 1000.0


@dataclass(frozen=True)
class DetectorState:
    """Complete detector state: the current round and the suspected steam ids."""

    round: RoundInfo = field(default_factory=RoundInfo)
    suspects: frozenset[int] = frozenset()


def initial_state(game: GameStateView) -> DetectorState:
    """State before any round has started."""
    return DetectorState(round=RoundInfo(number=game.total_rounds_played + 1))


# ============================================================================
# HELPERS
# ============================================================================


def _is_coaching(player: PlayerSnapshot | None) -> bool:
    """True when the player currently has a non-none coaching assignment."""
    return player is not None and bool(player.coaching_team)


def _report(state: DetectorState, player: PlayerSnapshot | None) -> ViolationRecord | None:
    """Build a violation record if the player is still coaching."""
    if player is None or not _is_coaching(player):
        return None

    record = ViolationRecord(
        round_number=state.round.number,
        coaching_team=player.coaching_team,
        player_name=player.name,
        steam_id=player.steam_id,
    )
    logger.info(f"Violation confirmed: {record.format_line()}")
    return record


def _all_dead(game: GameStateView, team: int) -> bool:
    return not any(member.is_alive for member in game.team_members(team))


# ============================================================================
# TRANSITIONS
# ============================================================================


def on_round_start(
    state: DetectorState,
    event: RoundFreezetimeEnd,
    game: GameStateView,
    config: DetectionConfig | None = None,
) -> Transition:
    """
    Start a new round at freezetime end.

    The suspect set is rebuilt from scratch: coaches already sitting in the
    fixed camera when the freeze period ends are suspected right away.
    """
    config = config or DetectionConfig()

    new_round = RoundInfo(
        number=game.total_rounds_played + 1,
        phase=RoundPhase.ACTIVE,
        start_time=game.current_time,
    )

    seeded = frozenset(
        player.steam_id
        for player in game.connected_players()
        if _is_coaching(player) and player.observer_mode == config.fixed_mode
    )

    logger.info(
        f"Round {new_round.number} started at {new_round.start_time:.2f}s "
        f"({len(seeded)} coach(es) already in fixed camera)"
    )
    return DetectorState(round=new_round, suspects=seeded), ()


def on_round_end(
    state: DetectorState,
    event: RoundEnd,
    game: GameStateView,
    config: DetectionConfig | None = None,
) -> Transition:
    """End the round, reporting every suspect who is still coaching."""
    violations = []
    for steam_id in sorted(state.suspects):
        record = _report(state, game.player(steam_id))
        if record is not None:
            violations.append(record)

    winner = f", won by {get_team_tag(event.winner)}" if event.winner is not None else ""
    logger.info(
        f"Round {state.round.number} ended{winner}: {len(state.suspects)} suspect(s), "
        f"{len(violations)} violation(s)"
    )
    ended = replace(state.round, phase=RoundPhase.ENDED)
    return DetectorState(round=ended, suspects=frozenset()), tuple(violations)


def on_disconnect(
    state: DetectorState,
    event: PlayerDisconnected,
    game: GameStateView,
    config: DetectionConfig | None = None,
) -> Transition:
    """
    Handle a suspect leaving mid-round.

    The suspect is always dropped from the set. Disconnects outside an active
    round or inside the grace window after freezetime end are not reported.
    """
    config = config or DetectionConfig()

    if event.steam_id not in state.suspects:
        return state, ()

    state = replace(state, suspects=state.suspects - {event.steam_id})

    elapsed = state.round.elapsed_ms(game.current_time)
    if not state.round.is_active or elapsed < config.disconnect_grace_ms:
        logger.debug(
            f"Suspect {event.steam_id} disconnected {elapsed:.0f}ms into round "
            f"{state.round.number}, not reported"
        )
        return state, ()

    record = _report(state, game.player(event.steam_id))
    return state, (record,) if record is not None else ()


def on_camera_mode_change(
    state: DetectorState,
    event: ObserverModeChanged,
    game: GameStateView,
    config: DetectionConfig | None = None,
) -> Transition:
    """
    Evaluate a spectator camera transition.

    Only spectators are considered. Switching to in-eye right after
    freezetime end (or outside a round) clears a suspicion. Switching to the
    fixed camera raises one unless every player of the coached side is dead
    and that side is a real playing side.
    """
    config = config or DetectionConfig()

    player = game.player(event.steam_id)
    if player is None or player.team != Team.SPECTATOR:
        return state, ()

    coaching_team = player.coaching_team if player.coaching_team is not None else Team.UNASSIGNED
    logger.debug(f"{player.name} camera changed to {get_mode_name(event.new_mode)}")

    if event.new_mode == config.in_eye_mode:
        elapsed = state.round.elapsed_ms(game.current_time)
        if not state.round.is_active or elapsed < config.in_eye_grace_ms:
            if event.steam_id in state.suspects:
                logger.debug(f"{player.name} switched to in-eye at {elapsed:.0f}ms, suspicion cleared")
            return replace(state, suspects=state.suspects - {event.steam_id}), ()

    elif event.new_mode == config.fixed_mode:
        # Once the coached side is wiped the fixed camera reveals nothing
        if coaching_team in PLAYING_SIDES and _all_dead(game, coaching_team):
            return state, ()

        logger.debug(
            f"{player.name} switched to fixed camera while coaching team {coaching_team}"
        )
        return replace(state, suspects=state.suspects | {event.steam_id}), ()

    return state, ()
