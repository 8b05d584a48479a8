"""
Pydantic models for API requests, responses and the analysis results payload.
"""

from typing import Annotated, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from badminton_domain.entities import AnalysisStatus


Score = Annotated[int, Field(ge=0, le=100)]


class TimeMarker(BaseModel):
    """A labelled moment in the video, in seconds."""
    time: float = Field(..., ge=0.0)
    label: str


class ShotPattern(BaseModel):
    """Share of a shot type in the rally mix."""
    name: str
    value: float = Field(..., ge=0.0, le=100.0)


class TechniqueMetrics(BaseModel):
    backswing: Score
    followThrough: Score
    contactPoint: Score
    racketPath: Score


class FootworkMetrics(BaseModel):
    movementEfficiency: Score
    recoverySpeed: Score
    courtCoverage: Score


class TechniqueReport(BaseModel):
    overallScore: Score
    feedback: List[str]
    detailedMetrics: TechniqueMetrics
    timeMarkers: Optional[List[TimeMarker]] = None


class FootworkReport(BaseModel):
    overallScore: Score
    feedback: List[str]
    detailedMetrics: FootworkMetrics
    timeMarkers: Optional[List[TimeMarker]] = None


class StrategyReport(BaseModel):
    overallScore: Score
    feedback: List[str]
    patterns: Optional[List[ShotPattern]] = None
    timeMarkers: Optional[List[TimeMarker]] = None


class AnalysisResults(BaseModel):
    """
    Structured feedback attached to a completed analysis.

    ``timeMarkers`` and ``patterns`` are optional extensions; clients must
    not rely on them being present.
    """
    technique: TechniqueReport
    footwork: FootworkReport
    strategy: StrategyReport

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "technique": {
                    "overallScore": 78,
                    "feedback": ["Your follow-through is excellent on smashes"],
                    "detailedMetrics": {
                        "backswing": 82, "followThrough": 75, "contactPoint": 68, "racketPath": 86
                    }
                },
                "footwork": {
                    "overallScore": 72,
                    "feedback": ["Your split-step timing is good"],
                    "detailedMetrics": {
                        "movementEfficiency": 70, "recoverySpeed": 65, "courtCoverage": 80
                    }
                },
                "strategy": {
                    "overallScore": 75,
                    "feedback": ["Effective use of drop shots"]
                }
            }
        }
    )


class UploadResponse(BaseModel):
    """Response after uploading a video."""
    success: bool = True
    videoId: str = Field(..., description="Identifier to poll for analysis results")
    message: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "videoId": "3f2a9c41be07",
                "message": "Video uploaded successfully. Analysis in progress."
            }
        }
    )


class AnalysisView(BaseModel):
    videoUrl: str
    status: AnalysisStatus
    results: Optional[AnalysisResults] = None


class AnalysisResponse(BaseModel):
    """Response for an analysis status poll."""
    success: bool = True
    analysis: AnalysisView


class AnalysisListItem(BaseModel):
    videoId: str
    status: AnalysisStatus
    createdAt: str


class AnalysisListResponse(BaseModel):
    success: bool = True
    count: int
    analyses: List[AnalysisListItem]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Error response."""
    success: bool = False
    error: str
