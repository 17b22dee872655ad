import importlib
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol

from . import scoring_rules
from .errors import ConfigurationError, EngineContractViolation
from .flight_log import to_engine_options, to_flight_log
from .models import ZERO_SCORE, CircuitType, OptimizationRequest, OptimizationResult
from .track_expansion import IndexMapping, expand_track


logger = logging.getLogger(__name__)

CIRCUIT_TYPES: Mapping[str, CircuitType] = {
    'od': CircuitType.OPEN_DISTANCE,
    'tri': CircuitType.FLAT_TRIANGLE,
    'fai': CircuitType.FAI_TRIANGLE,
    'oar': CircuitType.OUT_AND_RETURN,
}


class ScoringEngine(Protocol):
    """
    The trajectory search engine.

    run() lazily yields solutions, each one scoring at least as well as the
    previous one. The last solution of a complete search has optimal set.
    """

    def run(self, flight_log: Dict, rules: Iterable[Mapping], options: Dict) -> Iterable[Mapping]:
        ...


EngineFactory = Callable[[], ScoringEngine]


def to_circuit_type(code: Any) -> CircuitType:
    try:
        return CIRCUIT_TYPES[code]
    except (KeyError, TypeError):
        raise EngineContractViolation(f"no CircuitType found for {code!r}") from None


def closing_radius(closing_distance: Optional[float], distance: Optional[float],
                   fixed: Optional[float], relative_ratio: Optional[float]) -> Optional[float]:
    """
    Tightest closing threshold satisfied by the circuit.

    The candidates are the fixed threshold and relative_ratio * distance. Among
    those strictly greater than the closing distance, the smallest is returned.
    None when the circuit has no closing distance or no candidate qualifies.
    """
    if closing_distance is None:
        return None
    candidates = []
    if fixed is not None:
        candidates.append(fixed)
    if distance and relative_ratio:
        candidates.append(relative_ratio * distance)
    satisfied = [c for c in candidates if c > closing_distance]
    return min(satisfied) if satisfied else None


def _section(payload: Any, key: str) -> Mapping:
    """Optional nested object of the solution, empty when absent."""
    value = payload.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise EngineContractViolation(f"'{key}' is not an object: {value!r}")
    return value


def _point_index(point: Any) -> Optional[int]:
    if point is None:
        return None
    if not isinstance(point, Mapping):
        raise EngineContractViolation(f"solution point is not an object: {point!r}")
    return point.get('r')


def _solution_indices(score_info: Mapping, mapping: IndexMapping) -> List[int]:
    """
    Indices of the solution points in the original track, in path order:
    start, closing point in, turnpoints, closing point out, finish.
    Roles the circuit does not have are skipped.
    """
    entry_points = _section(score_info, 'ep')
    closing_points = _section(score_info, 'cp')
    turnpoints = score_info.get('tp') or []
    if not isinstance(turnpoints, (list, tuple)):
        raise EngineContractViolation(f"'tp' is not a list: {turnpoints!r}")

    engine_indices = [_point_index(entry_points.get('start')), _point_index(closing_points.get('in'))]
    engine_indices.extend(_point_index(tp) for tp in turnpoints)
    engine_indices.append(_point_index(closing_points.get('out')))
    engine_indices.append(_point_index(entry_points.get('finish')))

    indices = []
    for index in engine_indices:
        original = mapping.to_original(index)
        if original is not None:
            indices.append(original)
    return indices


def _decode(solution: Any, mapping: IndexMapping) -> OptimizationResult:
    if not isinstance(solution, Mapping):
        raise EngineContractViolation(f"solution is not an object: {type(solution).__name__}")

    scoring = _section(_section(solution, 'opt'), 'scoring')
    if not scoring:
        raise EngineContractViolation("solution has no opt.scoring")
    multiplier = scoring.get('multiplier')
    if multiplier is None:
        raise EngineContractViolation("solution has no opt.scoring.multiplier")

    score_info = _section(solution, 'scoreInfo')
    distance = score_info.get('distance') or 0
    radius_km = closing_radius(
        _section(score_info, 'cp').get('d'),
        distance,
        scoring.get('closingDistanceFixed'),
        scoring.get('closingDistanceRelative'),
    )

    return OptimizationResult(
        score=solution.get('score') or 0,
        length_km=distance,
        multiplier=multiplier,
        circuit=to_circuit_type(scoring.get('code')),
        closing_radius_m=None if radius_km is None else radius_km * 1000,
        solution_indices=tuple(_solution_indices(score_info, mapping)),
        optimal=bool(solution.get('optimal', False)),
    )


def decode_solution(solution: Any, mapping: Optional[IndexMapping] = None) -> OptimizationResult:
    """
    Convert one engine solution into an OptimizationResult.

    Args:
        solution: the solution object produced by the engine
        mapping: translation from engine indices to original track indices,
                 identity when omitted (indices are then not checked against
                 a track size)

    Raises:
        EngineContractViolation: the solution does not follow the engine contract
    """
    if mapping is None:
        mapping = IndexMapping.identity()
    try:
        return _decode(solution, mapping)
    except EngineContractViolation as e:
        e.solution = solution
        logger.error(f"Engine solution rejected: {e}. Payload: {solution!r}")
        raise


class OptimizationSession:
    """
    One optimization run over one track.

    The session is a cursor: each call to next_result() asks the engine for its
    next improvement and returns it decoded, until a result flagged optimal has
    been returned, the engine is exhausted or the session was cancelled, after
    which next_result() returns None. It can be driven from a thread, an async
    task or a message loop alike.
    """

    def __init__(self, request: OptimizationRequest, league: str, engine: ScoringEngine):
        self.request = request
        self.league = league
        self._engine = engine
        self._rules = None
        # no search needed below 2 points, the league does not matter then
        if len(request.track.points) >= 2:
            self._rules = scoring_rules.resolve(league)
        self._mapping: Optional[IndexMapping] = None
        self._solutions: Optional[Iterator[Mapping]] = None
        self._best: Optional[OptimizationResult] = None
        self._num_results = 0
        self._finished = False
        self._cancelled = False

    @property
    def best(self) -> Optional[OptimizationResult]:
        """The last result produced so far."""
        return self._best

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def mapping(self) -> Optional[IndexMapping]:
        return self._mapping

    def cancel(self) -> None:
        """Stop producing results. Results already returned remain valid."""
        if not self._finished:
            logger.info(f"Optimization cancelled after {self._num_results} result(s)")
        self._cancelled = True
        self._finished = True

    def _open(self) -> None:
        track = self.request.track.validate()
        expanded = expand_track(track)
        self._mapping = expanded.mapping
        flight_log = to_flight_log(expanded.track)
        options = to_engine_options(self.request.options)
        logger.info(
            f"Starting optimization of {len(track.points)} points for league {self.league} "
            f"(maxcycle={options['maxcycle']}, maxloop={options['maxloop']})")
        self._solutions = iter(self._engine.run(flight_log, self._rules, options))

    def _emit(self, result: OptimizationResult) -> OptimizationResult:
        self._best = result
        self._num_results += 1
        if result.optimal:
            self._finished = True
            logger.info(f"Optimal score {result.score} found after {self._num_results} result(s)")
        return result

    def next_result(self) -> Optional[OptimizationResult]:
        """The next, no worse, result or None when the session is over."""
        if self._finished:
            return None

        if len(self.request.track.points) < 2:
            logger.warning("Track with less than 2 points received, returning a 0 score")
            return self._emit(ZERO_SCORE)

        try:
            if self._solutions is None:
                self._open()
            try:
                solution = next(self._solutions)
            except StopIteration:
                self._finished = True
                logger.info(f"Engine stopped after {self._num_results} result(s) without an optimal flag")
                return None

            result = decode_solution(solution, self._mapping)
            if self._best is not None and result.score < self._best.score:
                logger.error(f"Engine score decreased from {self._best.score} to {result.score}. "
                             f"Payload: {solution!r}")
                raise EngineContractViolation(
                    f"score decreased from {self._best.score} to {result.score}", solution)
        except Exception:
            self._finished = True
            raise

        logger.debug(f"Result {self._num_results + 1}: score={result.score} circuit={result.circuit}")
        return self._emit(result)

    def __iter__(self) -> Iterator[OptimizationResult]:
        while True:
            result = self.next_result()
            if result is None:
                return
            yield result

    def run_to_completion(self) -> OptimizationResult:
        """Drive the session to its end and return the final result."""
        for _ in self:
            pass
        if self._best is None:
            raise EngineContractViolation("engine produced no solution")
        return self._best


def start(request: OptimizationRequest, league: str, engine: ScoringEngine) -> OptimizationSession:
    return OptimizationSession(request, league, engine)


def load_engine_factory(path: str) -> EngineFactory:
    """
    Import an engine from a 'module:attribute' string.

    The attribute is either an engine (an object with a run method), used as
    is, or a callable returning a new engine on each call.
    """
    module_name, sep, attribute = path.partition(':')
    if not sep or not module_name or not attribute:
        raise ConfigurationError(f"engine must be given as 'module:attribute', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"cannot import engine module {module_name!r}: {e}") from e
    try:
        target = getattr(module, attribute)
    except AttributeError:
        raise ConfigurationError(f"module {module_name!r} has no attribute {attribute!r}") from None

    if isinstance(target, type) or (callable(target) and not hasattr(target, 'run')):
        return target
    if hasattr(target, 'run'):
        return lambda: target
    raise ConfigurationError(f"{path!r} is neither an engine nor an engine factory")
