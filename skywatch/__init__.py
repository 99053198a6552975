"""
Skywatch Overhead Satellite Tracking Package

Determines which orbiting objects are above an observer, where to look, how far
away they are and when they next rise, using SGP4/SDP4 from the sgp4 library.

Modules:
    elements: Element sets, TLE parsing and the element set store
    propagator: SGP4/SDP4 propagation with error mapping
    frames: TEME/ECEF/geodetic transforms and observer look angles
    visibility: Visibility policies, Sun position and Earth shadow
    passes: Rise/culmination/set prediction
    brightness: Heuristic apparent magnitude
    sources: Local, simulated and remote (N2YO) data sources
    session: Periodic tracking session and snapshot computation
    catalog: CelesTrak catalog download
    app: Flask JSON service

References:
    Vallado, D. A., Crawford, P., Hujsak, R., & Kelso, T. S. (2006).
    Revisiting Spacetrack Report #3. AIAA 2006-6753.
"""

__version__ = "1.0.0"
