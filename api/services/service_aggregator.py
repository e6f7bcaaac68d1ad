# api/services/service_aggregator.py
"""
Collapse the services offered by every provider into unique normalized
labels, so each label is scored once no matter how many providers use it.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Union

from api.services.service_mapping_types import LabelGroup, ProviderRecord
from api.services.service_normalizer import normalize, split_services_field

logger = logging.getLogger(__name__)

ProviderInput = Union[ProviderRecord, Mapping[str, Any]]


def _provider_fields(provider: ProviderInput):
    if isinstance(provider, ProviderRecord):
        return provider.id, provider.services_field
    # Accept both the pipeline key and the raw table column name
    services = provider.get("services_field", provider.get("services"))
    return provider.get("id"), services


def aggregate(providers: Iterable[ProviderInput]) -> Dict[str, LabelGroup]:
    """
    Group provider service labels by normalized form.

    Returns {normalized_label: LabelGroup}. Labels that normalize to an
    empty string are dropped.
    """
    groups: Dict[str, LabelGroup] = {}
    provider_total = 0
    dropped = 0

    for provider in providers:
        provider_total += 1
        provider_id, services_field = _provider_fields(provider)

        for raw_label in split_services_field(services_field):
            label = normalize(raw_label)
            if not label:
                dropped += 1
                continue

            group = groups.get(label)
            if group is None:
                group = LabelGroup(label=label)
                groups[label] = group
            if provider_id is not None:
                group.provider_ids.add(str(provider_id))
            group.original_labels.add(raw_label)

    logger.info(
        f"📦 Aggregated {provider_total} providers into {len(groups)} unique service labels"
        + (f" ({dropped} blank labels dropped)" if dropped else "")
    )
    return groups


def ordered_groups(groups: Mapping[str, LabelGroup]) -> List[LabelGroup]:
    """Most used labels first, then alphabetical"""
    return sorted(groups.values(), key=lambda g: (-g.provider_count, g.label))
