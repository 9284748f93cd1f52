class RogueResidentError(Exception):
    """Base exception for the Rogue Resident engine."""


class ConfigurationError(RogueResidentError):
    """Raised when map options, configuration files or bundled data cannot be used."""


class StateConflictError(RogueResidentError):
    """Raised when a transition is illegal in the current state (e.g., selecting a locked node)."""


class InsufficientInsightError(StateConflictError):
    """Raised when an insight debit exceeds the current balance."""


class ValidationError(RogueResidentError):
    """Raised when an answer or descriptor has the wrong shape."""


class PersistenceError(RogueResidentError):
    """Raised when a save cannot be read, decoded or written."""
