"""
Configuration Management for Coachwatch

Configuration is built from default values, optionally overridden by a plain
dictionary (tests and library callers). Coachwatch reads no
configuration file and no environment variables; every run of the CLI is
driven by its single positional argument.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from coachwatch.core.constants import (
    DISCONNECT_GRACE_MS,
    IN_EYE_GRACE_MS,
    PLAYER_DISCONNECT_EVENT,
    ROUND_END_EVENT,
    ROUND_FREEZE_END_EVENT,
    ObserverMode,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class DetectionConfig:
    """Thresholds and mode values used by the coach camera state machine."""

    # In-eye switch earlier than this after freezetime end clears a suspicion
    in_eye_grace_ms: float = IN_EYE_GRACE_MS

    # Disconnects earlier than this after freezetime end are not reported
    disconnect_grace_ms: float = DISCONNECT_GRACE_MS

    # Observer mode values as they appear in the recording
    fixed_mode: int = ObserverMode.FIXED.value
    in_eye_mode: int = ObserverMode.IN_EYE.value


@dataclass
class ParserConfig:
    """Configuration for reading the demo through demoparser2."""

    # Entity property holding the coaching team
    coaching_team_prop: str = "CCSPlayerController.m_iCoachingTeam"

    # Camera mode properties, first non-empty value wins. Dead players keep
    # their player pawn, spectators and coaches sit on an observer pawn.
    observer_mode_props: list[str] = field(
        default_factory=lambda: [
            "CCSPlayerPawn.CCSPlayer_ObserverServices.m_iObserverMode",
            "CCSObserverPawn.CCSObserver_ObserverServices.m_iObserverMode",
        ]
    )

    tick_fields: list[str] = field(
        default_factory=lambda: [
            "steamid",
            "name",
            "team_num",
            "is_alive",
            "is_connected",
            "total_rounds_played",
        ]
    )
    parse_events: list[str] = field(
        default_factory=lambda: [
            ROUND_FREEZE_END_EVENT,
            ROUND_END_EVENT,
            PLAYER_DISCONNECT_EVENT,
        ]
    )


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class CoachwatchConfig:
    """Main configuration container."""

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Version of the config format
    config_version: str = "1.0"


# ============================================================================
# Configuration Loading
# ============================================================================


def dict_to_config(data: dict[str, Any]) -> CoachwatchConfig:
    """Convert a dictionary to CoachwatchConfig, ignoring unknown keys."""
    config = CoachwatchConfig()

    for section in ("detection", "parser", "logging"):
        if section not in data:
            continue
        target = getattr(config, section)
        for key, value in data[section].items():
            if hasattr(target, key):
                setattr(target, key, value)
            else:
                logger.warning(f"Ignoring unknown config key: {section}.{key}")

    return config


def config_to_dict(config: CoachwatchConfig) -> dict[str, Any]:
    """Convert CoachwatchConfig to a dictionary."""
    return asdict(config)


# ============================================================================
# Global Configuration
# ============================================================================

_global_config: CoachwatchConfig | None = None


def get_config() -> CoachwatchConfig:
    """Get the global configuration, creating the defaults if necessary."""
    global _global_config

    if _global_config is None:
        _global_config = CoachwatchConfig()

    return _global_config


def set_config(config: CoachwatchConfig) -> None:
    """Set the global configuration."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset the global configuration to defaults."""
    global _global_config
    _global_config = None
