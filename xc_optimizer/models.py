from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .errors import InvalidTrackError


@dataclass(frozen=True)
class TrackPoint:
    """A single recorded fix of the flight."""
    lat: float
    lon: float
    alt: float = 0.0
    # seconds elapsed since ScoringTrack.start_time_sec
    time_sec: float = 0.0


@dataclass(frozen=True)
class ScoringTrack:
    """
    The track to score.

    Args:
        points: the fixes of the flight, in recording order
        start_time_sec: epoch timestamp in seconds, the time_sec of each point is an offset from it
    """
    points: Tuple[TrackPoint, ...]
    start_time_sec: float = 0.0

    def __post_init__(self):
        # accept any sequence but store an immutable one
        object.__setattr__(self, 'points', tuple(self.points))

    def __len__(self):
        return len(self.points)

    def validate(self) -> 'ScoringTrack':
        """Check that time_sec never decreases along the track."""
        for i in range(1, len(self.points)):
            if self.points[i].time_sec < self.points[i - 1].time_sec:
                raise InvalidTrackError(
                    f"time_sec decreases at index {i}: "
                    f"{self.points[i - 1].time_sec} -> {self.points[i].time_sec}")
        return self


@dataclass(frozen=True)
class OptimizationOptions:
    """
    Bounds for a single engine invocation. None means unbounded.
    """
    max_cycle_duration_ms: Optional[int] = None
    max_num_cycles: Optional[int] = None


@dataclass(frozen=True)
class OptimizationRequest:
    track: ScoringTrack
    options: Optional[OptimizationOptions] = None


class CircuitType(Enum):
    OPEN_DISTANCE = 'Open distance'
    FLAT_TRIANGLE = 'Flat triangle'
    FAI_TRIANGLE = 'Fai triangle'
    OUT_AND_RETURN = 'Out and return'


@dataclass(frozen=True)
class OptimizationResult:
    """
    One decoded engine solution.

    score is length_km * multiplier. closing_radius_m is the tightest closing
    threshold the circuit satisfied, in meters. solution_indices point into the
    points of the ScoringTrack given in the request; their order follows the
    path (start, closing in, turnpoints, closing out, finish).
    optimal is True on the last result of a session.
    """
    score: float
    length_km: float
    multiplier: float
    circuit: Optional[CircuitType] = None
    closing_radius_m: Optional[float] = None
    solution_indices: Tuple[int, ...] = field(default_factory=tuple)
    optimal: bool = False


ZERO_SCORE = OptimizationResult(
    score=0,
    length_km=0,
    multiplier=0,
    solution_indices=(),
    optimal=True,
)
