"""
Storage for uploaded videos and analysis records.

Handles:
- Artifact storage under the upload directory
- The analysis record store (in memory, mirrored to records.json)
- Compare-and-set lifecycle transitions
"""

import json
import logging
import os
import re
import threading
import time
import uuid
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from badminton_domain.entities import AnalysisRecord, AnalysisStatus, can_transition
from badminton_domain.errors import InvalidTransition, PersistenceFailure, RecordNotFound


logger = logging.getLogger(__name__)

RECORDS_FILENAME = "records.json"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: Optional[str], default_ext: str = ".mp4") -> str:
    """Reduce a client-supplied filename to a safe basename."""
    name = Path(filename or "").name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    if not name:
        name = "video"
    if not Path(name).suffix:
        name += default_ext
    return name


class StorageManager:
    """
    Manages stored artifacts and analysis records.

    Thread-safe for concurrent access. Every mutation is written to disk
    before the lock is released; if the write fails the in-memory change is
    rolled back and PersistenceFailure is raised.
    """

    def __init__(self, data_dir: Path, upload_dir: Optional[Path] = None):
        """
        Initialize storage.

        Args:
            data_dir: Root directory; holds records.json
            upload_dir: Directory for uploaded videos (defaults to data_dir/uploads)
        """
        self.data_dir = Path(data_dir)
        self.upload_dir = Path(upload_dir) if upload_dir else self.data_dir / "uploads"
        self.records_file = self.data_dir / RECORDS_FILENAME

        self._records: Dict[str, AnalysisRecord] = {}
        self._lock = threading.Lock()

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

        self._load_records()

    def _load_records(self):
        """Load record state from disk on startup."""
        if not self.records_file.exists():
            logger.info("No records file at %s, starting empty", self.records_file)
            return
        try:
            with open(self.records_file) as f:
                records_data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Could not load records file %s: %s", self.records_file, e)
            return

        for record_id, record_data in records_data.items():
            try:
                self._records[record_id] = AnalysisRecord.from_dict(record_data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable record %s: %s", record_id, e)
        logger.info("Loaded %d records from disk", len(self._records))

    def _save_records(self):
        """Persist record state to disk. Caller holds the lock."""
        records_data = {rid: record.to_dict() for rid, record in self._records.items()}
        tmp_file = self.records_file.with_suffix(".json.tmp")
        try:
            with open(tmp_file, 'w') as f:
                json.dump(records_data, f, indent=2, default=str)
            os.replace(tmp_file, self.records_file)
        except OSError as e:
            logger.error("Failed to write %s: %s", self.records_file, e)
            raise PersistenceFailure() from e

    def generate_record_id(self) -> str:
        """Generate a unique record ID."""
        with self._lock:
            while True:
                record_id = uuid.uuid4().hex[:12]
                if record_id not in self._records:
                    return record_id

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def save_artifact(self, data: bytes, filename: Optional[str], default_ext: str = ".mp4") -> Tuple[str, Path]:
        """
        Store an uploaded video.

        The stored name is "<epoch ms>-<safe original name>", suffixed with a
        counter if it already exists.

        Returns:
            (artifact_id, path) of the stored file
        """
        base = f"{int(time.time() * 1000)}-{safe_filename(filename, default_ext)}"
        stem, ext = os.path.splitext(base)
        artifact_id = base
        counter = 1
        try:
            while True:
                path = self.upload_dir / artifact_id
                try:
                    with open(path, 'xb') as f:
                        f.write(data)
                    break
                except FileExistsError:
                    artifact_id = f"{stem}-{counter}{ext}"
                    counter += 1
        except OSError as e:
            logger.error("Failed to store artifact %s: %s", artifact_id, e)
            raise PersistenceFailure() from e
        return artifact_id, path

    def remove_artifact(self, path: Path) -> None:
        """Remove an artifact whose record was never created."""
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove orphan artifact %s: %s", path, e)

    def artifact_path(self, artifact_id: str) -> Path:
        return self.upload_dir / artifact_id

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def create_record(
        self,
        record_id: str,
        owner_id: str,
        tenant_id: str,
        artifact_id: str,
        artifact_location: Path,
        original_filename: Optional[str] = None,
        mime_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
    ) -> AnalysisRecord:
        """Create a new record in the pending state."""
        now = datetime.now()
        record = AnalysisRecord(
            id=record_id,
            owner_id=owner_id,
            tenant_id=tenant_id,
            artifact_id=artifact_id,
            artifact_location=str(artifact_location),
            status=AnalysisStatus.PENDING,
            created_at=now,
            updated_at=now,
            original_filename=original_filename,
            mime_type=mime_type,
            size_bytes=size_bytes,
        )

        with self._lock:
            if record_id in self._records:
                raise ValueError(f"Record id already in use: {record_id}")
            self._records[record_id] = record
            try:
                self._save_records()
            except PersistenceFailure:
                del self._records[record_id]
                raise

        return replace(record)

    def get_record(self, record_id: str) -> Optional[AnalysisRecord]:
        """Get a copy of a record by ID."""
        with self._lock:
            record = self._records.get(record_id)
            return replace(record) if record else None

    def transition(
        self,
        record_id: str,
        expected: AnalysisStatus,
        target: AnalysisStatus,
        results: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Optional[AnalysisRecord]:
        """
        Move a record from `expected` to `target`.

        Returns the updated record, or None when the record is no longer in
        the expected state (another writer got there first).

        Raises:
            RecordNotFound: unknown record_id
            InvalidTransition: the edge is not part of the lifecycle, or
                results are missing/present on the wrong state
            PersistenceFailure: the change could not be written
        """
        if not can_transition(expected, target):
            raise InvalidTransition(f"{expected.value} -> {target.value} is not allowed")
        if (target == AnalysisStatus.COMPLETED) != bool(results):
            raise InvalidTransition("results are attached exactly when an analysis completes")

        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                raise RecordNotFound(record_id)
            if current.status != expected:
                return None

            updated = replace(
                current,
                status=target,
                results=results,
                error=error,
                updated_at=datetime.now(),
            )
            self._records[record_id] = updated
            try:
                self._save_records()
            except PersistenceFailure:
                self._records[record_id] = current
                raise

            return replace(updated)

    def list_records(
        self,
        owner_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        status: Optional[AnalysisStatus] = None,
    ) -> List[AnalysisRecord]:
        """List records, optionally scoped to an owner/tenant/status, oldest first."""
        with self._lock:
            records = [
                replace(r) for r in self._records.values()
                if (owner_id is None or r.owner_id == owner_id)
                and (tenant_id is None or r.tenant_id == tenant_id)
                and (status is None or r.status == status)
            ]
        return sorted(records, key=lambda r: r.created_at)

    def status_counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in AnalysisStatus}
        with self._lock:
            for record in self._records.values():
                counts[record.status.value] += 1
        return counts
