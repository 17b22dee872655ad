import datetime
from typing import Dict, Optional

from .models import OptimizationOptions, ScoringTrack, TrackPoint


def _iso_utc(timestamp_sec: float) -> str:
    moment = datetime.datetime.fromtimestamp(timestamp_sec, tz=datetime.timezone.utc)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def to_fix(point: TrackPoint, start_time_sec: float) -> Dict:
    """Build the engine fix (B record) for one track point."""
    timestamp_ms = (start_time_sec + point.time_sec) * 1000
    return {
        'timestamp': timestamp_ms,
        'time': _iso_utc(timestamp_ms / 1000),
        'latitude': point.lat,
        'longitude': point.lon,
        'valid': True,
        'pressureAltitude': None,
        'gpsAltitude': point.alt,
        'extensions': {},
        'fixAccuracy': None,
        'enl': None
    }


def to_flight_log(track: ScoringTrack) -> Dict:
    """
    Project the track onto the flight log the engine consumes.

    Timestamps are absolute: start_time_sec + time_sec. Points are neither
    filtered nor reordered. Header fields the engine does not use are left out.
    """
    return {
        'date': _iso_utc(track.start_time_sec),
        'fixes': [to_fix(point, track.start_time_sec) for point in track.points]
    }


def to_engine_options(options: Optional[OptimizationOptions]) -> Dict:
    """Engine bounds for one invocation, None meaning unbounded."""
    if options is None:
        options = OptimizationOptions()
    return {
        'maxcycle': options.max_cycle_duration_ms,
        'maxloop': options.max_num_cycles
    }
