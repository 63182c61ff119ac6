"""
Coachwatch - Coach Camera Violation Detector for CS Demos

Replays a recorded match and reports coaches who switched to the fixed
spectator camera while the side they coach still had living players.

Usage:
    from coachwatch import analyze_demo

    for violation in analyze_demo("match.dem"):
        print(violation.format_line())
"""

__version__ = "0.1.0"
__author__ = "Coachwatch Contributors"


def __getattr__(name):
    """Lazy import for heavy dependencies."""
    if name == "DemoParser":
        from coachwatch.parser import DemoParser
        return DemoParser
    elif name == "DemoData":
        from coachwatch.parser import DemoData
        return DemoData
    elif name == "CoachAnalyzer":
        from coachwatch.analyzer import CoachAnalyzer
        return CoachAnalyzer
    elif name == "analyze_demo":
        from coachwatch.analyzer import analyze_demo
        return analyze_demo
    elif name == "ViolationRecord":
        from coachwatch.core.schemas import ViolationRecord
        return ViolationRecord
    raise AttributeError(f"module 'coachwatch' has no attribute '{name}'")


__all__ = [
    "__version__",
    "DemoParser",
    "DemoData",
    "CoachAnalyzer",
    "analyze_demo",
    "ViolationRecord",
]
