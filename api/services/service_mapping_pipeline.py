# api/services/service_mapping_pipeline.py
"""
Service mapping pipeline.

Loads the active taxonomy and active providers, scores every unique provider
service label once, auto-accepts confident matches into service_mapping and
queues the rest in service_mapping_suggestions. Every label ends up in exactly
one of mapped / suggested / failed, and the run returns a PipelineSummary.

A failure to read providers or taxonomy aborts the run before anything is
scored. Per-label and per-chunk failures are reported in the summary.
"""

import logging
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from config import AppConfig
from api.services.mapping_persistence import MappingPersistenceGateway
from api.services.review_queue import build_mapping, build_suggestion
from api.services.service_aggregator import aggregate, ordered_groups
from api.services.service_mapping_errors import EmptyCandidateSet
from api.services.service_mapping_types import (
    CanonicalService,
    Decision,
    LabelGroup,
    LabelOutcome,
    LabelStatus,
    MatchType,
    PipelineSummary,
)
from api.services.service_matching import ServiceMatcher, service_matcher

logger = logging.getLogger(__name__)


def summarize_outcomes(
    outcomes: Sequence[LabelOutcome],
    dry_run: bool = False,
    started_at: Optional[datetime] = None,
    finished_at: Optional[datetime] = None,
    thresholds: Optional[Dict[str, int]] = None,
) -> PipelineSummary:
    """Fold per-label outcomes into the run summary"""
    if thresholds is None:
        thresholds = service_matcher.thresholds()
    status_counts = Counter(o.status for o in outcomes)
    match_type_counts = {match_type.value: 0 for match_type in MatchType}
    for outcome in outcomes:
        if outcome.status != LabelStatus.FAILED and outcome.best is not None:
            match_type_counts[outcome.best.match_type.value] += 1

    total = len(outcomes)
    auto_accepted = status_counts[LabelStatus.MAPPED]
    auto_match_rate = round(auto_accepted / total * 100, 1) if total else 0.0

    return PipelineSummary(
        total_processed=total,
        auto_accepted=auto_accepted,
        routed_to_review=status_counts[LabelStatus.SUGGESTED],
        failed=status_counts[LabelStatus.FAILED],
        auto_match_rate=auto_match_rate,
        match_type_counts=match_type_counts,
        outcomes=tuple(outcomes),
        failed_labels=tuple(o.label for o in outcomes if o.status == LabelStatus.FAILED),
        dry_run=dry_run,
        started_at=started_at,
        finished_at=finished_at,
        thresholds=dict(thresholds),
    )


class ServiceMappingPipeline:
    """
    Batch job: extract -> score -> classify -> persist.
    """

    def __init__(
        self,
        database,
        matcher: Optional[ServiceMatcher] = None,
        gateway: Optional[MappingPersistenceGateway] = None,
        provider_status: Optional[str] = None,
    ):
        self.database = database
        self.matcher = matcher or service_matcher
        self.gateway = gateway or MappingPersistenceGateway(database)
        self.provider_status = provider_status if provider_status is not None else AppConfig.PROVIDER_ACTIVE_STATUS

    def evaluate_label(self, group: LabelGroup, taxonomy: Sequence[CanonicalService]) -> LabelOutcome:
        """Score and classify one unique label. Never raises for label-level problems."""
        candidates = self.matcher.rank_candidates(group.label, taxonomy)
        try:
            result = self.matcher.classify(candidates)
        except EmptyCandidateSet as e:
            logger.warning(f"⚠️ Skipping '{group.label}': {e}")
            return LabelOutcome(
                label=group.label,
                status=LabelStatus.FAILED,
                provider_count=group.provider_count,
                original_labels=tuple(sorted(group.original_labels)),
                error=str(e),
            )

        status = LabelStatus.MAPPED if result.decision == Decision.AUTO else LabelStatus.SUGGESTED
        return LabelOutcome(
            label=group.label,
            status=status,
            provider_count=group.provider_count,
            original_labels=tuple(sorted(group.original_labels)),
            best=result.best,
            candidates=tuple(candidates),
        )

    def evaluate(self, groups: Iterable[LabelGroup], taxonomy: Sequence[CanonicalService]) -> List[LabelOutcome]:
        groups = list(groups)
        outcomes = []
        for index, group in enumerate(groups, start=1):
            outcomes.append(self.evaluate_label(group, taxonomy))
            if index % 100 == 0:
                logger.info(f"   Processed {index}/{len(groups)} labels...")
        return outcomes

    def persist(self, outcomes: Sequence[LabelOutcome]) -> List[LabelOutcome]:
        """
        Write mapped and suggested outcomes. Labels whose chunk failed come
        back re-tagged as failed.
        """
        mappings = [
            build_mapping(o.label, o.best)
            for o in outcomes
            if o.status == LabelStatus.MAPPED
        ]
        suggestions = [
            build_suggestion(o.label, [c for c in o.candidates if c.score > 0])
            for o in outcomes
            if o.status == LabelStatus.SUGGESTED
        ]

        failures = self.gateway.upsert_mappings(mappings) + self.gateway.upsert_suggestions(suggestions)
        failed_reasons = {f.label: f"{f.table}: {f.reason}" for f in failures}

        if not failed_reasons:
            return list(outcomes)

        return [
            replace(o, status=LabelStatus.FAILED, error=failed_reasons[o.label])
            if o.label in failed_reasons and o.status != LabelStatus.FAILED
            else o
            for o in outcomes
        ]

    def run(self, dry_run: bool = False) -> PipelineSummary:
        """
        Run the full pipeline and return its summary.

        Raises DataSourceUnavailable if providers or taxonomy cannot be read.
        """
        started_at = datetime.utcnow()
        logger.info("🔍 Starting service mapping run" + (" (dry run)" if dry_run else ""))

        taxonomy = self.database.list_canonical_services(active_only=True)
        logger.info(f"✅ Loaded {len(taxonomy)} canonical services")

        providers = self.database.list_providers(status=self.provider_status)
        logger.info(f"✅ Loaded {len(providers)} providers with status '{self.provider_status}'")

        groups = ordered_groups(aggregate(providers))
        outcomes = self.evaluate(groups, taxonomy)

        if not dry_run:
            outcomes = self.persist(outcomes)

        summary = summarize_outcomes(
            outcomes,
            dry_run=dry_run,
            started_at=started_at,
            finished_at=datetime.utcnow(),
            thresholds=self.matcher.thresholds(),
        )
        log_summary(summary)
        return summary


def log_summary(summary: PipelineSummary):
    logger.info("📊 Service mapping summary:")
    logger.info(f"   📦 Unique labels processed: {summary.total_processed}")
    logger.info(f"   🟢 Auto-accepted:           {summary.auto_accepted}")
    logger.info(f"   🟡 Routed to review:        {summary.routed_to_review}")
    logger.info(f"   🔴 Failed:                  {summary.failed}")
    logger.info(f"   🎯 Auto-match rate:         {summary.auto_match_rate}%")
    if summary.failed_labels:
        logger.warning(f"⚠️ Labels to rerun: {', '.join(summary.failed_labels[:20])}"
                       + (" ..." if len(summary.failed_labels) > 20 else ""))
