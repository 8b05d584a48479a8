from .entities import (
    AnalysisStatus, AnalysisRecord, AnalysisSnapshot, TERMINAL_STATUSES, TRANSITIONS, can_transition
)
from .errors import (
    AnalyzerError, InvalidArtifactType, ArtifactTooLarge, EmptyArtifact, MissingField,
    RecordNotFound, PersistenceFailure, InvalidTransition, AnalysisEngineFailure,
    AnalysisTimeout, ConfigurationError
)
from .ports import IAnalysisEngine

__all__ = [
    "AnalysisStatus", "AnalysisRecord", "AnalysisSnapshot", "TERMINAL_STATUSES", "TRANSITIONS",
    "can_transition",
    "AnalyzerError", "InvalidArtifactType", "ArtifactTooLarge", "EmptyArtifact", "MissingField",
    "RecordNotFound", "PersistenceFailure", "InvalidTransition", "AnalysisEngineFailure",
    "AnalysisTimeout", "ConfigurationError",
    "IAnalysisEngine",
]
