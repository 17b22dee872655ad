"""Adapter between recorded flight tracks and a trajectory scoring engine."""
from .errors import ConfigurationError, EngineContractViolation, InvalidTrackError, XCOptimizerError
from .models import (
    ZERO_SCORE,
    CircuitType,
    OptimizationOptions,
    OptimizationRequest,
    OptimizationResult,
    ScoringTrack,
    TrackPoint,
)
from .optimization import OptimizationSession, ScoringEngine, decode_solution, start
from .score_worker import ScoreMessage, ScoreTask, ScoreWorker
from .scoring_rules import resolve

__version__ = "0.1.0"
