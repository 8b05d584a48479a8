"""
Error taxonomy for intake and the analysis lifecycle.

Every error carries the HTTP status it maps to and a public message that is
safe to return to clients. Internal detail (paths, tracebacks) belongs in the
log, never in ``public_message``.
"""

from typing import Optional


class AnalyzerError(Exception):
    """Base exception for the analyzer service."""
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)
        if message is not None:
            self.public_message = message


class InvalidArtifactType(AnalyzerError):
    status_code = 400
    public_message = "Invalid file type. Only MP4 and MOV videos are allowed."


class ArtifactTooLarge(AnalyzerError):
    status_code = 400
    public_message = "File too large. Maximum size is 100MB."


class EmptyArtifact(AnalyzerError):
    status_code = 400
    public_message = "No video file uploaded"


class MissingField(AnalyzerError):
    status_code = 400
    public_message = "Missing required field"


class RecordNotFound(AnalyzerError):
    status_code = 404
    public_message = "Analysis not found"

    def __init__(self, record_id: str):
        super().__init__()
        self.record_id = record_id

    def __str__(self):
        return f"Analysis record not found: {self.record_id}"


class PersistenceFailure(AnalyzerError):
    """Raised when the record store or artifact storage cannot be written."""
    status_code = 500
    public_message = "Storage error. Please try again later."


class InvalidTransition(AnalyzerError):
    """A lifecycle edge that the state machine does not allow."""
    status_code = 409
    public_message = "Invalid analysis state change"


class AnalysisEngineFailure(AnalyzerError):
    """The analysis engine raised or returned an unusable result."""
    public_message = "Analysis failed"


class AnalysisTimeout(AnalysisEngineFailure):
    public_message = "Analysis timed out"


class ConfigurationError(AnalyzerError):
    public_message = "Invalid configuration"
