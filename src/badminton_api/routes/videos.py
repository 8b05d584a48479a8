"""
Video upload and analysis endpoints.

Endpoints:
- POST /upload-video: Upload a video for analysis
- GET /analysis/{analysis_id}: Poll status and results
- GET /analyses: List analyses for a user/shop
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from badminton_domain.errors import EmptyArtifact
from ..context import AppContext, get_context
from ..intake import UPLOAD_MESSAGE
from ..models import (
    AnalysisListItem,
    AnalysisListResponse,
    AnalysisResponse,
    AnalysisView,
    ErrorResponse,
    UploadResponse,
)


router = APIRouter(tags=["videos"])


def video_url(context: AppContext, artifact_id: str) -> str:
    return f"{context.settings.public_base_url}/uploads/{artifact_id}"


@router.post(
    "/upload-video",
    response_model=UploadResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid upload"},
        500: {"model": ErrorResponse, "description": "Server error"}
    },
    summary="Upload a video for analysis",
    description="""
    Upload a badminton video to be analyzed.

    The upload returns immediately with a `videoId`; poll
    `/api/analysis/{videoId}` for the result.

    **Supported formats:** MP4 (`video/mp4`), MOV (`video/quicktime`)
    **Maximum size:** 100MB (configurable)
    """
)
async def upload_video(
    video: Optional[UploadFile] = File(None, description="Video file to analyze"),
    userId: Optional[str] = Form(None),
    shopId: Optional[str] = Form(None),
    context: AppContext = Depends(get_context),
):
    """Upload a video for analysis."""
    if video is None:
        raise EmptyArtifact()

    # One byte past the ceiling is enough to detect an oversized upload
    content = await video.read(context.settings.max_upload_bytes + 1)

    record = context.intake.accept(
        owner_id=userId,
        tenant_id=shopId,
        data=content,
        mime_type=video.content_type,
        filename=video.filename,
    )

    return UploadResponse(videoId=record.id, message=UPLOAD_MESSAGE)


@router.get(
    "/analysis/{analysis_id}",
    response_model=AnalysisResponse,
    response_model_exclude_none=True,
    responses={
        404: {"model": ErrorResponse, "description": "Analysis not found"}
    },
    summary="Get analysis status and results",
    description="""
    **Statuses:**
    - `pending`: Waiting in queue
    - `processing`: Currently being analyzed
    - `completed`: `results` is included
    - `failed`: An error occurred; no results

    Poll every few seconds while status is `pending` or `processing`.
    """
)
async def get_analysis(analysis_id: str, context: AppContext = Depends(get_context)):
    """Get the analysis for a video."""
    snapshot = context.tracker.query(analysis_id)

    return AnalysisResponse(
        analysis=AnalysisView(
            videoUrl=video_url(context, snapshot.artifact_id),
            status=snapshot.status,
            results=snapshot.results,
        )
    )


@router.get(
    "/analyses",
    response_model=AnalysisListResponse,
    summary="List analyses",
    description="List analyses, optionally scoped to a user and/or shop."
)
async def list_analyses(
    userId: Optional[str] = Query(None),
    shopId: Optional[str] = Query(None),
    context: AppContext = Depends(get_context),
):
    records = context.storage.list_records(owner_id=userId, tenant_id=shopId)

    return AnalysisListResponse(
        count=len(records),
        analyses=[
            AnalysisListItem(
                videoId=record.id,
                status=record.status,
                createdAt=record.created_at.isoformat(),
            )
            for record in records
        ]
    )
