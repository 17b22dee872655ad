import logging
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .errors import EngineContractViolation, InvalidTrackError
from .models import ScoringTrack, TrackPoint


logger = logging.getLogger(__name__)

# The engine refuses tracks with fewer points than this.
MIN_POINTS = 5

# Added points sit at this fraction of the segment length from the segment
# start, so any solution point the engine picks among them is, for scoring
# purposes, the segment start itself.
DISTRIBUTION_FACTOR = 1e-5

# Number of sub-segments for each segment of a short track, keyed by point count.
# Every layout adds up to MIN_POINTS points once shared endpoints are merged.
_SEGMENT_LAYOUTS = {
    2: (4,),
    3: (2, 2),
    4: (2, 1, 1),
}


class IndexMapping:
    """
    Relation from an index in the engine track to an index in the original track.

    Built mappings are backed by a tuple indexed by the engine index. The
    identity mapping is used when the track was handed to the engine unchanged;
    given the track size, it rejects indices past the end of the track.
    """

    __slots__ = ('_targets', '_size')

    def __init__(self, targets: Optional[Sequence[int]] = None, size: Optional[int] = None):
        self._targets = None if targets is None else tuple(int(t) for t in targets)
        self._size = len(self._targets) if self._targets is not None else size

    @classmethod
    def identity(cls, size: Optional[int] = None) -> 'IndexMapping':
        return cls(None, size)

    @property
    def is_identity(self) -> bool:
        return self._targets is None

    @property
    def targets(self) -> Optional[Tuple[int, ...]]:
        return self._targets

    @property
    def size(self) -> Optional[int]:
        """Number of points sent to the engine, None when unknown."""
        return self._size

    def to_original(self, index: Optional[int]) -> Optional[int]:
        """Translate an engine index. None (role absent) translates to None."""
        if index is None:
            return None
        if isinstance(index, bool) or not isinstance(index, (int, np.integer)):
            raise EngineContractViolation(f"solution index {index!r} is not an integer")
        index = int(index)
        if index < 0:
            raise EngineContractViolation(f"solution index {index} is negative")
        if self._size is not None and index >= self._size:
            raise EngineContractViolation(
                f"solution index {index} is outside the {self._size} points sent to the engine")
        if self._targets is None:
            return index
        return self._targets[index]

    def __eq__(self, other):
        return (isinstance(other, IndexMapping) and self._targets == other._targets
                and self._size == other._size)

    def __hash__(self):
        return hash((self._targets, self._size))

    def __repr__(self):
        if self._targets is None:
            return f'IndexMapping(identity, size={self._size})'
        return f'IndexMapping({list(self._targets)})'


class ExpandedTrack(NamedTuple):
    track: ScoringTrack
    mapping: IndexMapping


def create_segments(start: TrackPoint, end: TrackPoint, num_segments: int,
                    distribution_factor: float = DISTRIBUTION_FACTOR) -> List[TrackPoint]:
    """
    Split the segment start -> end into num_segments sub-segments.

    Returns num_segments + 1 points: start, the added points, end. Added point j
    lies at fraction j * distribution_factor of the segment, all attributes
    (position, altitude and time) being interpolated linearly.
    """
    if num_segments < 1:
        raise ValueError(f"num_segments must be >= 1, got {num_segments}")

    fractions = np.arange(1, num_segments) * distribution_factor
    origin = np.array([start.lat, start.lon, start.alt, start.time_sec], dtype=float)
    delta = np.array([end.lat, end.lon, end.alt, end.time_sec], dtype=float) - origin
    added = origin + np.outer(fractions, delta)

    points = [start]
    points.extend(TrackPoint(lat=float(lat), lon=float(lon), alt=float(alt), time_sec=float(t))
                  for lat, lon, alt, t in added)
    points.append(end)
    return points


def expand_track(track: ScoringTrack) -> ExpandedTrack:
    """
    Make sure the track has at least MIN_POINTS points.

    Tracks that are long enough are returned as is with an identity mapping.
    Tracks of 2 to 4 points get points added right next to existing ones and a
    mapping from each of the MIN_POINTS resulting indices to the original point
    it was derived from.
    """
    num_points = len(track.points)
    if num_points >= MIN_POINTS:
        return ExpandedTrack(track, IndexMapping.identity(num_points))

    layout = _SEGMENT_LAYOUTS.get(num_points)
    if layout is None:
        raise InvalidTrackError(f"cannot expand a track of {num_points} point(s)")

    logger.info(f"Track has {num_points} points, adding {MIN_POINTS - num_points} to reach {MIN_POINTS}")

    points: List[TrackPoint] = []
    targets: List[int] = []
    for segment_idx, num_segments in enumerate(layout):
        segment = create_segments(track.points[segment_idx], track.points[segment_idx + 1], num_segments)
        # the start of this segment is the end of the previous one
        if points:
            segment = segment[1:]
            targets.extend([segment_idx] * (num_segments - 1))
        else:
            targets.extend([segment_idx] * num_segments)
        targets.append(segment_idx + 1)
        points.extend(segment)

    expanded = ScoringTrack(points=tuple(points), start_time_sec=track.start_time_sec)
    return ExpandedTrack(expanded, IndexMapping(targets))
