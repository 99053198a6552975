"""
Physical Constants and Reference Data

Gravitational constants follow WGS-72, as required by SGP4 (Vallado et al. 2006,
AAS 06-675). Observer geometry uses the WGS-84 ellipsoid.

Note: TLE-derived positions are only as good as the element set. For operational
use, refresh element sets from CelesTrak or Space-Track at least weekly for LEO.
"""

import math

# WGS-72 (SGP4)
EARTH_RADIUS_KM = 6378.135
GRAVITATIONAL_PARAMETER = 398600.8  # km^3/s^2

# WGS-84 (observer geodesy)
WGS84_A_KM = 6378.137
WGS84_F = 1.0 / 298.257223563
WGS84_E2 = WGS84_F * (2.0 - WGS84_F)

EARTH_ROTATION_RATE = 7.292115146706979e-5  # rad/s
AU_KM = 149597870.7

TWOPI = 2.0 * math.pi
MINUTES_PER_DAY = 1440.0
XPDOTP = MINUTES_PER_DAY / TWOPI  # rev/day -> rad/min

# Period threshold between the near-Earth (SGP4) and deep-space (SDP4) branches
DEEP_SPACE_PERIOD_MINUTES = 225.0

# Julian date of the sgp4init epoch origin (1949 December 31 00:00 UT)
JD_1949_DEC_31 = 2433281.5
JD_J2000 = 2451545.0
