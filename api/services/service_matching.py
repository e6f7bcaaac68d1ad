# api/services/service_matching.py
"""
Scoring and classification of provider service labels against the
canonical service taxonomy.

Scoring is a cascade, first applicable rule wins:
    1. exact match after normalization          -> 100, exact
    2. one phrase contains the other (whole     -> 85..95 by length ratio, high
       tokens)
    3. token-set Jaccard overlap                -> 1..99, high/medium/low
    4. nothing in common                        -> 0, none

The thresholds are hand-picked heuristics tuned on Portuguese labels and
are exposed through AppConfig so they can be recalibrated.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from config import AppConfig
from api.services.service_mapping_errors import EmptyCandidateSet
from api.services.service_mapping_types import (
    CanonicalService,
    ClassificationResult,
    Decision,
    MatchCandidate,
    MatchType,
)
from api.services.service_normalizer import normalize, tokenize

logger = logging.getLogger(__name__)

EXACT_SCORE = 100
CONTAINMENT_MIN_SCORE = 85
CONTAINMENT_MAX_SCORE = 95


def candidate_rank_key(candidate: MatchCandidate) -> Tuple:
    """Score desc, then historical requests desc, then service label asc"""
    return (
        -candidate.score,
        -candidate.historical_request_count,
        candidate.service,
        candidate.taxonomy_id,
    )


class ServiceMatcher:
    """
    Scores labels against canonical services and decides whether the best
    match can be accepted without review.
    """

    def __init__(
        self,
        auto_accept_threshold: Optional[int] = None,
        high_threshold: Optional[int] = None,
        medium_threshold: Optional[int] = None,
        max_candidates: Optional[int] = None,
    ):
        self.auto_accept_threshold = auto_accept_threshold if auto_accept_threshold is not None else AppConfig.AUTO_ACCEPT_THRESHOLD
        self.high_threshold = high_threshold if high_threshold is not None else AppConfig.HIGH_MATCH_THRESHOLD
        self.medium_threshold = medium_threshold if medium_threshold is not None else AppConfig.MEDIUM_MATCH_THRESHOLD
        self.max_candidates = max_candidates if max_candidates is not None else AppConfig.MAX_SUGGESTIONS

    def thresholds(self) -> Dict[str, int]:
        return {
            "auto_accept": self.auto_accept_threshold,
            "high": self.high_threshold,
            "medium": self.medium_threshold,
        }

    # ====================
    # SCORING
    # ====================

    def score_with_type(self, normalized_label: str, candidate: CanonicalService) -> Tuple[int, MatchType]:
        """Score one label against one canonical service"""
        target = normalize(candidate.service)

        if not normalized_label or not target:
            return 0, MatchType.NONE

        if normalized_label == target:
            return EXACT_SCORE, MatchType.EXACT

        # Whole tokens only: "ar" must not match inside "jardinagem"
        padded_label, padded_target = f" {normalized_label} ", f" {target} "
        if padded_label in padded_target or padded_target in padded_label:
            shorter, longer = sorted((len(normalized_label), len(target)))
            ratio = shorter / longer
            score = CONTAINMENT_MIN_SCORE + int(round((CONTAINMENT_MAX_SCORE - CONTAINMENT_MIN_SCORE) * ratio))
            return min(score, CONTAINMENT_MAX_SCORE), MatchType.HIGH

        label_tokens = set(tokenize(normalized_label))
        target_tokens = set(tokenize(target))
        shared = label_tokens & target_tokens
        if not shared:
            return 0, MatchType.NONE

        jaccard = len(shared) / len(label_tokens | target_tokens)
        # 100 is reserved for exact matches; reordered tokens top out at 99
        score = max(1, min(EXACT_SCORE - 1, int(round(100 * jaccard))))
        return score, self.match_type_for_overlap(score)

    def score(self, normalized_label: str, candidate: CanonicalService) -> int:
        return self.score_with_type(normalized_label, candidate)[0]

    def match_type_for_overlap(self, score: int) -> MatchType:
        if score >= self.high_threshold:
            return MatchType.HIGH
        if score >= self.medium_threshold:
            return MatchType.MEDIUM
        if score > 0:
            return MatchType.LOW
        return MatchType.NONE

    def score_candidate(self, normalized_label: str, candidate: CanonicalService) -> MatchCandidate:
        score, match_type = self.score_with_type(normalized_label, candidate)
        return MatchCandidate(
            taxonomy_id=candidate.id,
            score=score,
            match_type=match_type,
            service=candidate.service,
            category=candidate.category,
            historical_request_count=candidate.historical_request_count or 0,
        )

    def rank_candidates(
        self,
        normalized_label: str,
        taxonomy: Iterable[CanonicalService],
        limit: Optional[int] = None,
    ) -> List[MatchCandidate]:
        """
        Score the label against every canonical service and return the best
        `limit` candidates (default max_candidates), in rank order.
        """
        limit = self.max_candidates if limit is None else limit
        scored = [self.score_candidate(normalized_label, entry) for entry in taxonomy]
        scored.sort(key=candidate_rank_key)
        return scored[:limit]

    # ====================
    # CLASSIFICATION
    # ====================

    def classify(self, candidates: Sequence[MatchCandidate]) -> ClassificationResult:
        """
        Auto-accept iff the best candidate scores at least the threshold.

        Raises EmptyCandidateSet when there is nothing to classify.
        """
        if not candidates:
            raise EmptyCandidateSet()

        best = min(candidates, key=candidate_rank_key)
        decision = Decision.AUTO if best.score >= self.auto_accept_threshold else Decision.REVIEW
        return ClassificationResult(decision=decision, best=best)


# Global instance for use throughout the application
service_matcher = ServiceMatcher()


def score(normalized_label: str, candidate: CanonicalService) -> int:
    return service_matcher.score(normalized_label, candidate)


def rank_candidates(normalized_label: str, taxonomy: Iterable[CanonicalService], limit: Optional[int] = None) -> List[MatchCandidate]:
    return service_matcher.rank_candidates(normalized_label, taxonomy, limit)


def classify(candidates: Sequence[MatchCandidate]) -> ClassificationResult:
    return service_matcher.classify(candidates)
