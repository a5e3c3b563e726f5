"""
Physical, geodetic and file-format constants shared across the planner.
"""

import math

TWO_PI = 2.0 * math.pi

# Astronomical unit in kilometers (IAU 2012)
AU_KM = 149_597_870.7

# Gaussian gravitational constant, AU^1.5 / day
GAUSSIAN_K = 0.01720209895

# Mean obliquity of the ecliptic at J2000 (degrees)
OBLIQUITY_J2000_DEG = 23.439291111

# Julian dates
JD_J2000 = 2451545.0
JD_UNIX_EPOCH = 2440587.5
SECONDS_PER_DAY = 86400.0
DAYS_PER_JULIAN_CENTURY = 36525.0

# Time scales
TT_MINUS_TAI_SECONDS = 32.184
DEFAULT_TAI_MINUS_UTC_SECONDS = 37.0

# WGS-84 ellipsoid
WGS84_A_M = 6378137.0
WGS84_F = 1.0 / 298.257223563
WGS84_E2 = WGS84_F * (2.0 - WGS84_F)

# NAIF body ids
SSB_ID = 0
EMB_ID = 3
SUN_ID = 10
EARTH_ID = 399

# NAIF frame id for J2000 and the only SPK segment type evaluated here
J2000_FRAME_ID = 1
SPK_CHEBYSHEV_POSITION_TYPE = 2

# DAF layout
DAF_RECORD_BYTES = 1024
DAF_WORD_BYTES = 8
DAF_MAGIC = "DAF/"
DAF_LITTLE_ENDIAN_TAG = "LTL-IEEE"
DAF_BIG_ENDIAN_TAG = "BIG-IEEE"
