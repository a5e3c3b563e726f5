"""
Angle conversion and normalization helpers.
"""

import math

from .constants import TWO_PI


def deg_to_rad(deg: float) -> float:
    return deg * math.pi / 180.0


def rad_to_deg(rad: float) -> float:
    return rad * 180.0 / math.pi


def normalize_rad_0_to_2pi(rad: float) -> float:
    """
    Wrap an angle in radians into [0, 2*pi).

    Args:
        rad: Any finite angle in radians

    Returns:
        Equivalent angle in [0, 2*pi)
    """
    x = math.fmod(rad, TWO_PI)
    if x < 0.0:
        x += TWO_PI
    # fmod of a tiny negative value can round up to exactly 2*pi
    if x >= TWO_PI:
        x = 0.0
    return x


def normalize_deg_0_to_360(deg: float) -> float:
    """
    Wrap an angle in degrees into [0, 360).

    Args:
        deg: Any finite angle in degrees

    Returns:
        Equivalent angle in [0, 360)
    """
    x = math.fmod(deg, 360.0)
    if x < 0.0:
        x += 360.0
    if x >= 360.0:
        x = 0.0
    return x
