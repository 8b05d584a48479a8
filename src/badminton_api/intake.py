"""
Upload intake: validate an uploaded video, store it, open a pending record.
"""

import logging
from typing import Dict, Optional

from badminton_domain.entities import AnalysisRecord
from badminton_domain.errors import ArtifactTooLarge, EmptyArtifact, InvalidArtifactType, MissingField
from .storage import StorageManager
from .tasks import AnalysisTracker


logger = logging.getLogger(__name__)

# MIME type -> extension used when the upload has no usable filename
ALLOWED_MIME_TYPES: Dict[str, str] = {
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
}

UPLOAD_MESSAGE = "Video uploaded successfully. Analysis in progress."


def normalize_mime_type(mime_type: Optional[str]) -> str:
    return (mime_type or "").split(";", 1)[0].strip().lower()


class UploadIntake:
    """
    Accepts uploads and creates their analysis records.

    A rejected upload leaves nothing behind: validation happens before any
    write, and the stored file is removed if the record cannot be created.
    """

    def __init__(self, storage: StorageManager, tracker: AnalysisTracker, max_upload_bytes: int):
        self.storage = storage
        self.tracker = tracker
        self.max_upload_bytes = max_upload_bytes

    def validate(self, owner_id: Optional[str], tenant_id: Optional[str], data: bytes, mime_type: Optional[str]):
        if not (owner_id or "").strip():
            raise MissingField("Missing required field: userId")
        if not (tenant_id or "").strip():
            raise MissingField("Missing required field: shopId")
        if normalize_mime_type(mime_type) not in ALLOWED_MIME_TYPES:
            raise InvalidArtifactType()
        if not data:
            raise EmptyArtifact()
        if len(data) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            raise ArtifactTooLarge(f"File too large. Maximum size is {limit_mb}MB.")

    def accept(
        self,
        owner_id: Optional[str],
        tenant_id: Optional[str],
        data: bytes,
        mime_type: Optional[str],
        filename: Optional[str] = None,
    ) -> AnalysisRecord:
        """
        Validate and store an upload, then queue it for analysis.

        Returns the new pending record. Never waits for the analysis.
        """
        self.validate(owner_id, tenant_id, data, mime_type)
        mime = normalize_mime_type(mime_type)

        artifact_id, path = self.storage.save_artifact(data, filename, ALLOWED_MIME_TYPES[mime])
        try:
            record = self.storage.create_record(
                record_id=self.storage.generate_record_id(),
                owner_id=owner_id.strip(),
                tenant_id=tenant_id.strip(),
                artifact_id=artifact_id,
                artifact_location=path,
                original_filename=filename,
                mime_type=mime,
                size_bytes=len(data),
            )
        except Exception:
            self.storage.remove_artifact(path)
            raise

        logger.info(
            "Accepted upload %s (%s, %.1f MB) for user=%s shop=%s",
            record.id, mime, len(data) / (1024 * 1024), record.owner_id, record.tenant_id
        )
        self.tracker.enqueue(record.id, record.artifact_location)
        return record
