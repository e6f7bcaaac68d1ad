# api/services/service_mapping_types.py
"""
Plain data types passed between the stages of the service mapping pipeline.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple


class MatchType(str, Enum):
    EXACT = "exact"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class Decision(str, Enum):
    AUTO = "auto"
    REVIEW = "review"


class LabelStatus(str, Enum):
    MAPPED = "mapped"          # written to service_mapping
    SUGGESTED = "suggested"    # written to service_mapping_suggestions
    FAILED = "failed"          # neither; safe to retry next run


class SuggestionStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


@dataclass(frozen=True)
class CanonicalService:
    id: str
    category: str
    service: str
    historical_request_count: int = 0
    active: bool = True


@dataclass(frozen=True)
class ProviderRecord:
    id: str
    services_field: Any
    status: Optional[str] = None


@dataclass
class LabelGroup:
    """All providers and spellings that normalize to the same label"""
    label: str
    provider_ids: Set[str] = field(default_factory=set)
    original_labels: Set[str] = field(default_factory=set)

    @property
    def provider_count(self) -> int:
        return len(self.provider_ids)


@dataclass(frozen=True)
class MatchCandidate:
    taxonomy_id: str
    score: int
    match_type: MatchType
    service: str = ""
    category: str = ""
    historical_request_count: int = 0


@dataclass(frozen=True)
class ClassificationResult:
    decision: Decision
    best: MatchCandidate


@dataclass(frozen=True)
class ServiceMappingRecord:
    provider_service_name: str
    taxonomy_service_id: str
    confidence_score: int
    match_type: MatchType
    verified: bool

    def to_row(self) -> Dict[str, Any]:
        return {
            "provider_service_name": self.provider_service_name,
            "taxonomy_service_id": self.taxonomy_service_id,
            "confidence_score": self.confidence_score,
            "match_type": self.match_type.value,
            "verified": self.verified,
        }


@dataclass(frozen=True)
class ServiceMappingSuggestionRecord:
    provider_service_name: str
    suggested_taxonomy_id_1: Optional[str] = None
    suggested_score_1: Optional[int] = None
    suggested_taxonomy_id_2: Optional[str] = None
    suggested_score_2: Optional[int] = None
    suggested_taxonomy_id_3: Optional[str] = None
    suggested_score_3: Optional[int] = None
    status: SuggestionStatus = SuggestionStatus.PENDING

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row["status"] = self.status.value
        return row


@dataclass(frozen=True)
class FailedWrite:
    """One label that could not be persisted"""
    label: str
    table: str
    reason: str


@dataclass(frozen=True)
class LabelOutcome:
    label: str
    status: LabelStatus
    provider_count: int = 0
    original_labels: Tuple[str, ...] = ()
    best: Optional[MatchCandidate] = None
    candidates: Tuple[MatchCandidate, ...] = ()
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        best = self.best
        return {
            "label": self.label,
            "status": self.status.value,
            "provider_count": self.provider_count,
            "original_labels": list(self.original_labels),
            "best_taxonomy_id": best.taxonomy_id if best else None,
            "best_service": best.service if best else None,
            "best_category": best.category if best else None,
            "score": best.score if best else None,
            "match_type": best.match_type.value if best else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class PipelineSummary:
    total_processed: int
    auto_accepted: int
    routed_to_review: int
    failed: int
    auto_match_rate: float
    match_type_counts: Dict[str, int]
    outcomes: Tuple[LabelOutcome, ...]
    failed_labels: Tuple[str, ...]
    dry_run: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    # Thresholds of the matcher that produced this run, for labelling reports
    thresholds: Dict[str, int] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        if not self.started_at or not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def outcomes_with_status(self, status: LabelStatus) -> List[LabelOutcome]:
        return [o for o in self.outcomes if o.status == status]

    def to_dict(self, include_outcomes: bool = False) -> Dict[str, Any]:
        result = {
            "total_processed": self.total_processed,
            "auto_accepted": self.auto_accepted,
            "routed_to_review": self.routed_to_review,
            "failed": self.failed,
            "auto_match_rate": self.auto_match_rate,
            "match_type_counts": dict(self.match_type_counts),
            "failed_labels": list(self.failed_labels),
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "thresholds": dict(self.thresholds),
        }
        if include_outcomes:
            result["outcomes"] = [o.to_dict() for o in self.outcomes]
        return result
