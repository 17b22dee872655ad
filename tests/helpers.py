"""Shared fixtures for the test suite."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Sequence

from xc_optimizer.models import ScoringTrack, TrackPoint


def make_track(num_points: int, start_time_sec: float = 1_600_000_000) -> ScoringTrack:
    """A track heading north-east, one point per minute."""
    points = [
        TrackPoint(lat=45.0 + 0.01 * i, lon=6.0 + 0.01 * i, alt=1000 + 10 * i, time_sec=60 * i)
        for i in range(num_points)
    ]
    return ScoringTrack(points=tuple(points), start_time_sec=start_time_sec)


def make_solution(
    score: Optional[float] = 10.0,
    distance: Optional[float] = 10.0,
    multiplier: float = 1.0,
    code: str = "od",
    start: Optional[int] = None,
    finish: Optional[int] = None,
    turnpoints: Sequence[int] = (),
    closing_in: Optional[int] = None,
    closing_out: Optional[int] = None,
    closing_distance: Optional[float] = None,
    closing_fixed: Optional[float] = None,
    closing_relative: Optional[float] = None,
    optimal: Optional[bool] = None,
) -> Dict:
    """An engine solution payload."""
    scoring: Dict = {"code": code, "multiplier": multiplier}
    if closing_fixed is not None:
        scoring["closingDistanceFixed"] = closing_fixed
    if closing_relative is not None:
        scoring["closingDistanceRelative"] = closing_relative

    score_info: Dict = {"distance": distance}
    if turnpoints:
        score_info["tp"] = [{"r": r} for r in turnpoints]
    if start is not None or finish is not None:
        score_info["ep"] = {}
        if start is not None:
            score_info["ep"]["start"] = {"r": start}
        if finish is not None:
            score_info["ep"]["finish"] = {"r": finish}
    if closing_in is not None or closing_out is not None or closing_distance is not None:
        score_info["cp"] = {"d": closing_distance}
        if closing_in is not None:
            score_info["cp"]["in"] = {"r": closing_in}
        if closing_out is not None:
            score_info["cp"]["out"] = {"r": closing_out}

    solution: Dict = {"score": score, "opt": {"scoring": scoring}, "scoreInfo": score_info}
    if optimal is not None:
        solution["optimal"] = optimal
    return solution


class ScriptedEngine:
    """Engine that replays a fixed list of solutions and records its calls."""

    def __init__(self, solutions: Sequence[Dict], fail_after: Optional[int] = None,
                 gate: Optional[threading.Event] = None) -> None:
        self.solutions = list(solutions)
        self.fail_after = fail_after
        self.gate = gate
        self.calls: List[tuple] = []
        self.produced = 0

    def run(self, flight_log, rules, options):
        self.calls.append((flight_log, rules, options))
        for solution in self.solutions:
            if self.gate is not None:
                self.gate.wait(5)
            if self.fail_after is not None and self.produced >= self.fail_after:
                raise RuntimeError("engine crashed")
            self.produced += 1
            yield solution


def optimal_engine() -> ScriptedEngine:
    """Engine factory usable as 'tests.helpers:optimal_engine'."""
    return ScriptedEngine([
        make_solution(score=5.0, distance=5.0, code="od", start=0, turnpoints=[1], finish=2),
        make_solution(score=12.0, distance=10.0, multiplier=1.2, code="tri", start=0,
                      closing_in=0, turnpoints=[1, 2], closing_out=2, finish=2,
                      closing_distance=1.0, closing_relative=0.2, optimal=True),
    ])
