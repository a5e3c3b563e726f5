"""
NEO Visibility Planner

Plans when near-Earth objects are observable from a ground site: a NAIF
DAF/SPK planetary ephemeris reader, a Keplerian orbit propagator, the
inertial-to-horizon frame pipeline and a sampled visibility scanner.
"""

from .ephemeris import SpkEphemeris
from .orbit import OrbitElements
from .planner import PlannedResult, VisibilityPlanner, VisibilityRequest, plan_visibility
from .targets import NeoTarget, Observer, TargetManager
from .timescales import TimeScaleConfig

__version__ = "0.1.0"
__author__ = "NEO Planner Team"

__all__ = [
    "NeoTarget",
    "Observer",
    "OrbitElements",
    "PlannedResult",
    "SpkEphemeris",
    "TargetManager",
    "TimeScaleConfig",
    "VisibilityPlanner",
    "VisibilityRequest",
    "plan_visibility",
]
