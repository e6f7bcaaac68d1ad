# api/services/review_queue.py
"""
Builds review-queue suggestions and accepted mappings from ranked candidates.
"""

from typing import Sequence

from api.services.service_mapping_types import (
    MatchCandidate,
    ServiceMappingRecord,
    ServiceMappingSuggestionRecord,
    SuggestionStatus,
)

SUGGESTION_SLOTS = 3


def build_suggestion(label: str, candidates: Sequence[MatchCandidate]) -> ServiceMappingSuggestionRecord:
    """
    Map up to three ranked candidates into suggestion slots 1..3.

    Slots without a candidate stay None. Status always starts as pending.
    """
    slots = {}
    for index in range(SUGGESTION_SLOTS):
        candidate = candidates[index] if index < len(candidates) else None
        slots[f"suggested_taxonomy_id_{index + 1}"] = candidate.taxonomy_id if candidate else None
        slots[f"suggested_score_{index + 1}"] = candidate.score if candidate else None

    return ServiceMappingSuggestionRecord(
        provider_service_name=label,
        status=SuggestionStatus.PENDING,
        **slots,
    )


def build_mapping(label: str, best: MatchCandidate) -> ServiceMappingRecord:
    """Accepted mapping for an auto-accepted label; only exact scores are verified"""
    return ServiceMappingRecord(
        provider_service_name=label,
        taxonomy_service_id=best.taxonomy_id,
        confidence_score=best.score,
        match_type=best.match_type,
        verified=best.score == 100,
    )
