import argparse
import datetime
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

import numpy as np

from .errors import XCOptimizerError
from .models import CircuitType, OptimizationOptions, OptimizationRequest, OptimizationResult, ScoringTrack, TrackPoint
from .optimization import load_engine_factory
from .score_worker import ScoreMessage, ScoreTask, ScoreWorker
from .scoring_rules import LEAGUES


logger = logging.getLogger(__name__)

# Spacing given to points that come without a time.
DEFAULT_POINT_INTERVAL_SEC = 60


@dataclass
class Score:
    """Score of a flight as shown to the user."""
    distance_m: float = 0
    indexes: List[int] = field(default_factory=list)
    multiplier: float = 1
    circuit: CircuitType = CircuitType.OPEN_DISTANCE
    closing_radius_m: Optional[float] = None
    points: float = 0

    @classmethod
    def from_result(cls, result: OptimizationResult) -> 'Score':
        return cls(
            distance_m=result.length_km * 1000,
            indexes=list(result.solution_indices),
            multiplier=result.multiplier,
            circuit=result.circuit or CircuitType.OPEN_DISTANCE,
            closing_radius_m=result.closing_radius_m or None,
            points=result.score,
        )


def _attr(point: Any, name: str, default=None):
    """Read a field from a TrackPoint-like object or from a dictionary."""
    if isinstance(point, dict):
        return point.get(name, default)
    return getattr(point, name, default)


def to_scoring_track(points: Sequence[Any], start_time_sec: float = 0) -> ScoringTrack:
    """
    Build a ScoringTrack from points that have at least lat and lon.

    A missing altitude becomes 0 and a missing time becomes i * 60 seconds.
    """
    track_points = []
    for i, point in enumerate(points):
        alt = _attr(point, 'alt')
        time_sec = _attr(point, 'time_sec')
        track_points.append(TrackPoint(
            lat=_attr(point, 'lat'),
            lon=_attr(point, 'lon'),
            alt=0 if alt is None else alt,
            time_sec=i * DEFAULT_POINT_INTERVAL_SEC if time_sec is None else time_sec,
        ))
    return ScoringTrack(points=tuple(track_points), start_time_sec=start_time_sec)


def compute_score(points: Sequence[Any], league: str, on_result: Callable[[Score], None],
                  worker: ScoreWorker, options: Optional[OptimizationOptions] = None) -> ScoreTask:
    """
    Score a track in the background.

    on_result is called with a Score for every improvement, the last call
    being for the final score. The returned task can be cancelled.
    """
    request = OptimizationRequest(track=to_scoring_track(points), options=options)

    def deliver(message: ScoreMessage) -> None:
        on_result(Score.from_result(message.result))

    return worker.submit(request, league, deliver)


def get_sampled_track(points: Sequence[Any], sample_interval_sec: float) -> List[Any]:
    """
    Keep the first point, then the first point past each sampling interval.
    """
    if not points:
        return []
    next_sample_time = _attr(points[0], 'time_sec') + sample_interval_sec
    samples = [points[0]]
    for point in points:
        if _attr(point, 'time_sec') > next_sample_time:
            next_sample_time += sample_interval_sec
            samples.append(point)
    return samples


def haversine_distance_vectorized(lat1, lon1, lat2, lon2):
    """
    Vectorized Haversine distance calculation.

    Args:
        lat1, lon1: Latitude and longitude of start points (scalar or array)
        lat2, lon2: Latitude and longitude of end points (arrays)

    Returns:
        Array of distances in kilometers
    """
    lat1, lon1, lat2, lon2 = map(np.radians, [lat1, lon1, lat2, lon2])

    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = np.sin(dlat/2)**2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon/2)**2
    c = 2 * np.arcsin(np.sqrt(a))
    r = 6371  # Radius of earth in kilometers
    return c * r


def get_track_length_km(points: Sequence[Any]) -> float:
    """Length of the path through all the points, in km."""
    if len(points) < 2:
        return 0.0
    coords = np.array([[_attr(p, 'lat'), _attr(p, 'lon')] for p in points], dtype=float)
    legs = haversine_distance_vectorized(coords[:-1, 0], coords[:-1, 1], coords[1:, 0], coords[1:, 1])
    return float(np.sum(legs))


class IGCParser:
    """Parser for IGC (International Gliding Commission) files"""

    def __init__(self, file_path: str):
        """Initialize with the path to an IGC file"""
        self.file_path = file_path
        self.fixes = []
        self.date: Optional[datetime.date] = None

    def parse(self) -> ScoringTrack:
        """Parse the IGC file and return the track to score"""
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                content = f.readlines()
        except UnicodeDecodeError:
            # Try with latin-1 encoding if utf-8 fails
            with open(self.file_path, 'r', encoding='latin-1') as f:
                content = f.readlines()
        return self.parse_lines(content)

    def parse_lines(self, lines: Sequence[str]) -> ScoringTrack:
        self.fixes = []
        self.date = None
        for line in lines:
            line = line.strip()
            if not line:
                continue

            record_type = line[0]

            # B records contain GPS fixes
            if record_type == 'B':
                fix = self._parse_b_record(line)
                if fix:
                    self.fixes.append(fix)

            # H records contain header information
            elif record_type == 'H':
                self._parse_h_record(line)

        logger.info(f"Parsed {len(self.fixes)} fixes from {self.file_path}")
        return self._to_scoring_track()

    def _to_scoring_track(self) -> ScoringTrack:
        if not self.fixes:
            return ScoringTrack(points=())

        date = self.date or datetime.date(1970, 1, 1)
        first = self.fixes[0]
        start = datetime.datetime.combine(date, first['time'], tzinfo=datetime.timezone.utc)

        points = []
        day_offset = 0
        previous_seconds = None
        for fix in self.fixes:
            t = fix['time']
            seconds = t.hour * 3600 + t.minute * 60 + t.second
            # Handle day change (when a track spans midnight)
            if previous_seconds is not None and seconds < previous_seconds:
                day_offset += 86400
            previous_seconds = seconds
            time_sec = seconds + day_offset - (first['time'].hour * 3600 + first['time'].minute * 60 + first['time'].second)
            alt = fix['gps_alt'] if fix['gps_alt'] else fix['pressure_alt']
            points.append(TrackPoint(lat=fix['lat'], lon=fix['lon'], alt=alt or 0, time_sec=time_sec))

        return ScoringTrack(points=tuple(points), start_time_sec=start.timestamp())

    def _parse_b_record(self, line: str) -> Optional[dict]:
        """Parse a B record (GPS fix)"""
        # Typical B record format:
        # B1111225310.9123N00108.8224WA00854F085

        if len(line) < 35:  # Minimum length for a valid B record
            return None

        try:
            hours = int(line[1:3])
            minutes = int(line[3:5])
            seconds = int(line[5:7])
            fix_time = datetime.time(hours, minutes, seconds)

            lat_deg = int(line[7:9])
            lat_min = float(line[9:14]) / 1000.0
            latitude = lat_deg + lat_min / 60.0
            if line[14] == 'S':
                latitude = -latitude

            lon_deg = int(line[15:18])
            lon_min = float(line[18:23]) / 1000.0
            longitude = lon_deg + lon_min / 60.0
            if line[23] == 'W':
                longitude = -longitude

            return {
                'time': fix_time,
                'lat': latitude,
                'lon': longitude,
                'pressure_alt': int(line[25:30]),
                'gps_alt': int(line[30:35])
            }
        except (ValueError, IndexError):
            logger.debug(f"Skipping malformed B record: {line}")
            return None

    def _parse_h_record(self, line: str) -> None:
        """Parse a header record, only the flight date is used"""
        # HFDTE010720 or HFDTEDATE:010720,01
        if not line[2:5] == 'DTE':
            return
        digits = ''.join(c for c in line[5:].split(',')[0] if c.isdigit())[:6]
        if len(digits) != 6:
            return
        try:
            day, month, year = int(digits[0:2]), int(digits[2:4]), int(digits[4:6])
            self.date = datetime.date(2000 + year if year < 80 else 1900 + year, month, day)
        except ValueError:
            logger.warning(f"Invalid date header: {line}")


def process_igc_file(file_path: str, league: str, worker: ScoreWorker,
                     options: Optional[OptimizationOptions] = None,
                     sample_interval_sec: Optional[float] = None,
                     on_result: Optional[Callable[[OptimizationResult], None]] = None) -> Optional[OptimizationResult]:
    """
    Score an IGC file and return the final result.

    Args:
        file_path: Path to the IGC file
        league: league id, e.g. 'xc'
        worker: the worker running the optimization
        options: bounds for each engine invocation
        sample_interval_sec: when set, the track is sampled before scoring and
                             the result indices refer to the sampled track
        on_result: called for every intermediate result
    """
    track = IGCParser(file_path).parse()
    if sample_interval_sec:
        sampled = get_sampled_track(track.points, sample_interval_sec)
        logger.info(f"Sampled {len(track.points)} points down to {len(sampled)}")
        track = ScoringTrack(points=tuple(sampled), start_time_sec=track.start_time_sec)

    def deliver(message: ScoreMessage) -> None:
        if on_result is not None:
            on_result(message.result)

    task = worker.submit(OptimizationRequest(track=track, options=options), league, deliver)
    return task.result()


def _print_result(result: OptimizationResult) -> None:
    print(f"Score: {result.score:.2f} points ({result.length_km:.2f} km x {result.multiplier})"
          f"{' [optimal]' if result.optimal else ''}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Score paragliding flights against league rules')
    parser.add_argument('igc_file', help='Path to the IGC file to analyze')
    parser.add_argument('--league', default='xc', choices=sorted(LEAGUES),
                        help='League whose rules are applied (default: xc)')
    parser.add_argument('--engine', required=True,
                        help="Search engine as 'module:attribute', an engine or an engine factory")
    parser.add_argument('--max-cycle-ms', type=int, default=None,
                        help='Maximum duration of one engine invocation in milliseconds')
    parser.add_argument('--max-cycles', type=int, default=None,
                        help='Maximum number of iterations of one engine invocation')
    parser.add_argument('--sample-interval', type=float, default=None,
                        help='Sample the track every N seconds before scoring')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    options = OptimizationOptions(max_cycle_duration_ms=args.max_cycle_ms, max_num_cycles=args.max_cycles)
    start_time = time.time()
    try:
        engine_factory = load_engine_factory(args.engine)
        with ScoreWorker(engine_factory) as worker:
            result = process_igc_file(args.igc_file, args.league, worker, options,
                                      args.sample_interval, _print_result)
    except (XCOptimizerError, OSError) as e:
        logger.error(f"Scoring failed: {e}")
        return 2

    print(f"Execution Time: {time.time() - start_time:.4f} seconds")
    if result is None:
        print("No score computed")
        return 1

    score = Score.from_result(result)
    print(f"Circuit: {score.circuit.value}")
    print(f"Score: {score.points:.2f} points")
    print(f"Distance: {score.distance_m / 1000:.2f} km")
    print(f"Multiplier: {score.multiplier}")
    if score.closing_radius_m is not None:
        print(f"Closing radius: {score.closing_radius_m:.0f} m")
    if score.indexes:
        print(f"Solution points: {', '.join(str(i) for i in score.indexes)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
