"""Exceptions raised while preparing, running or decoding a track optimization."""


class XCOptimizerError(Exception):
    """Base class for all errors raised by xc_optimizer."""


class ConfigurationError(XCOptimizerError, ValueError):
    """The request names a league or scoring rule that does not exist."""


class InvalidTrackError(XCOptimizerError, ValueError):
    """The track cannot be handed to the engine in its current shape."""


class EngineContractViolation(XCOptimizerError):
    """The engine returned a solution this package does not understand.

    The offending payload is kept on ``solution`` so callers can report it.
    """

    def __init__(self, message, solution=None):
        super().__init__(message)
        self.solution = solution
