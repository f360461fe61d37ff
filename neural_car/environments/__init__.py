"""
Host environments that drive genotypes through trials.

- ring_track: annular track with ray-cast sensing and lap counting
"""

from .ring_track import Car, CarState, RingTrack, TrackConfig

__all__ = ["Car", "CarState", "RingTrack", "TrackConfig"]
