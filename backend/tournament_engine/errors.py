"""
Engine error hierarchy.

Generators and the allocator raise InvalidConfigurationError before producing
anything, so callers never see a partial schedule. The progression engine
raises AmbiguousResultError for a tied score where a winner is required and
InconsistentBracketStateError when stored data contradicts the bracket graph.
"""


class EngineError(Exception):
    """Base exception for scheduling/progression errors"""

    pass


class InvalidConfigurationError(EngineError):
    """Input rejected before any match was generated or scheduled"""

    pass


class AmbiguousResultError(EngineError):
    """Completed match has no winner (tied sets and games)"""

    def __init__(self, match_code: str, message: str = ""):
        self.match_code = match_code
        super().__init__(message or f"Match {match_code} is tied; a winner is required")


class InconsistentBracketStateError(EngineError):
    """Bracket data contradicts the feeder graph (missing winner, unknown feeder, conflicting slot)"""

    def __init__(self, match_code: str, message: str):
        self.match_code = match_code
        super().__init__(f"{match_code}: {message}")
