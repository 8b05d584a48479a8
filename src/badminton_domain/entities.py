from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


class AnalysisStatus(str, Enum):
    """Lifecycle status of an analysis record."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[AnalysisStatus] = frozenset(
    {AnalysisStatus.COMPLETED, AnalysisStatus.FAILED}
)

# Allowed edges of the lifecycle. pending -> failed is only used when a
# record cannot be recovered at start-up.
TRANSITIONS: Dict[AnalysisStatus, FrozenSet[AnalysisStatus]] = {
    AnalysisStatus.PENDING: frozenset({AnalysisStatus.PROCESSING, AnalysisStatus.FAILED}),
    AnalysisStatus.PROCESSING: frozenset({AnalysisStatus.COMPLETED, AnalysisStatus.FAILED}),
    AnalysisStatus.COMPLETED: frozenset(),
    AnalysisStatus.FAILED: frozenset(),
}


def can_transition(current: AnalysisStatus, target: AnalysisStatus) -> bool:
    return target in TRANSITIONS[current]


@dataclass
class AnalysisRecord:
    """
    One uploaded video and the state of its analysis.

    Identity, owner and artifact fields are fixed at creation. Only the
    lifecycle tracker changes status/results/error, through the record store.
    """
    id: str
    owner_id: str
    tenant_id: str
    artifact_id: str
    artifact_location: str
    status: AnalysisStatus
    created_at: datetime
    updated_at: datetime
    results: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    original_filename: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        data['created_at'] = self.created_at.isoformat()
        data['updated_at'] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisRecord":
        data = dict(data)
        data['status'] = AnalysisStatus(data['status'])
        data['created_at'] = datetime.fromisoformat(data['created_at'])
        data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        for optional_field in ('results', 'error', 'original_filename', 'mime_type', 'size_bytes'):
            data.setdefault(optional_field, None)
        return cls(**data)


@dataclass(frozen=True)
class AnalysisSnapshot:
    """Point-in-time view of a record as exposed to polling clients."""
    id: str
    status: AnalysisStatus
    artifact_id: str
    results: Optional[Dict[str, Any]] = None

    @classmethod
    def of(cls, record: AnalysisRecord) -> "AnalysisSnapshot":
        results = record.results if record.status == AnalysisStatus.COMPLETED else None
        return cls(
            id=record.id,
            status=record.status,
            artifact_id=record.artifact_id,
            results=results,
        )
