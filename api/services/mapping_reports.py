# api/services/mapping_reports.py
"""
CSV and markdown exports of a mapping run, for operators reviewing results
outside the database.
"""

import csv
import logging
from pathlib import Path
from typing import Mapping, Union

from config import AppConfig
from api.services.service_aggregator import ordered_groups
from api.services.service_mapping_types import LabelGroup, LabelStatus, PipelineSummary

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

MATCH_CSV_HEADER = [
    "provider_service",
    "provider_count",
    "taxonomy_service",
    "taxonomy_category",
    "taxonomy_id",
    "score",
    "match_type",
    "status",
]

MARKDOWN_AUTO_LIMIT = 50
MARKDOWN_REVIEW_LIMIT = 30


def _prepare(path: PathLike) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def export_matches_csv(summary: PipelineSummary, path: PathLike) -> Path:
    """One row per processed label with its best candidate"""
    path = _prepare(path)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(MATCH_CSV_HEADER)
        for outcome in summary.outcomes:
            best = outcome.best
            writer.writerow([
                outcome.label,
                outcome.provider_count,
                best.service if best else "",
                best.category if best else "",
                best.taxonomy_id if best else "",
                best.score if best else "",
                best.match_type.value if best else "",
                outcome.status.value,
            ])
    logger.info(f"💾 Matches CSV saved to: {path}")
    return path


def export_provider_services_csv(groups: Mapping[str, LabelGroup], path: PathLike) -> Path:
    """Unique provider service labels with how many providers use them"""
    path = _prepare(path)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["service", "provider_count", "original_labels", "provider_ids"])
        for group in ordered_groups(groups):
            writer.writerow([
                group.label,
                group.provider_count,
                " | ".join(sorted(group.original_labels)),
                ",".join(sorted(group.provider_ids)),
            ])
    logger.info(f"💾 Provider services CSV saved to: {path}")
    return path


def render_markdown_report(summary: PipelineSummary) -> str:
    counts = summary.match_type_counts
    thresholds = summary.thresholds
    auto_threshold = thresholds.get("auto_accept", AppConfig.AUTO_ACCEPT_THRESHOLD)
    high = thresholds.get("high", AppConfig.HIGH_MATCH_THRESHOLD)
    medium = thresholds.get("medium", AppConfig.MEDIUM_MATCH_THRESHOLD)

    generated_at = summary.finished_at or summary.started_at

    lines = [
        "# Service Matching Report",
        "",
        f"**Generated:** {generated_at.isoformat() if generated_at else '-'}",
        "",
        "## Statistics",
        "",
        "| Type | Score | Labels |",
        "|------|-------|--------|",
        f"| 🟢 Exact | 100 | {counts.get('exact', 0)} |",
        f"| 🟢 High | {high}-99 | {counts.get('high', 0)} |",
        f"| 🟡 Medium | {medium}-{high - 1} | {counts.get('medium', 0)} |",
        f"| 🟠 Low | 1-{medium - 1} | {counts.get('low', 0)} |",
        f"| 🔴 None | 0 | {counts.get('none', 0)} |",
        f"| **Total** | | **{summary.total_processed}** |",
        "",
        f"- Auto-accepted (score >= {auto_threshold}): {summary.auto_accepted}",
        f"- Routed to review: {summary.routed_to_review}",
        f"- Failed: {summary.failed}",
        f"- Auto-match rate: {summary.auto_match_rate}%",
        "",
    ]

    mapped = summary.outcomes_with_status(LabelStatus.MAPPED)
    lines += [
        f"## Automatic Matches ({len(mapped)})",
        "",
        "| Provider Service | → | Taxonomy Service | Category | Score |",
        "|------------------|---|------------------|----------|-------|",
    ]
    for o in mapped[:MARKDOWN_AUTO_LIMIT]:
        lines.append(f"| {o.label} | → | {o.best.service} | {o.best.category} | {o.best.score}% |")
    if len(mapped) > MARKDOWN_AUTO_LIMIT:
        lines += ["", f"*... and {len(mapped) - MARKDOWN_AUTO_LIMIT} more*"]
    lines.append("")

    review = summary.outcomes_with_status(LabelStatus.SUGGESTED)
    lines += [
        f"## Matches for Review ({len(review)})",
        "",
        "| Provider Service | → | Best Match | Score | Suggested Action |",
        "|------------------|---|------------|-------|------------------|",
    ]
    for o in review[:MARKDOWN_REVIEW_LIMIT]:
        best_service = o.best.service if o.best and o.best.score > 0 else "-"
        score = o.best.score if o.best else 0
        action = "⚠️ Validate" if score >= medium else "❌ Create new taxonomy entry?"
        lines.append(f"| {o.label} | → | {best_service} | {score}% | {action} |")
    if len(review) > MARKDOWN_REVIEW_LIMIT:
        lines += ["", f"*... and {len(review) - MARKDOWN_REVIEW_LIMIT} more*"]
    lines.append("")

    if summary.failed_labels:
        lines += [f"## Failed ({summary.failed})", ""]
        lines += [f"- {label}" for label in summary.failed_labels]
        lines.append("")

    return "\n".join(lines)


def export_markdown_report(summary: PipelineSummary, path: PathLike) -> Path:
    path = _prepare(path)
    path.write_text(render_markdown_report(summary), encoding="utf-8")
    logger.info(f"📄 Markdown report saved to: {path}")
    return path
