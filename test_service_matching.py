"""Tests for scoring, ranking and classification."""

import random

import pytest

from api.services.service_mapping_errors import EmptyCandidateSet
from api.services.service_mapping_types import CanonicalService, Decision, MatchCandidate, MatchType
from api.services.service_matching import ServiceMatcher, candidate_rank_key
from api.services.service_normalizer import normalize


@pytest.fixture
def matcher():
    return ServiceMatcher(auto_accept_threshold=85, high_threshold=60, medium_threshold=40, max_candidates=3)


def service(name, count=0, id=None, category="Geral"):
    return CanonicalService(id=id or f"id-{name}", category=category, service=name, historical_request_count=count)


def candidate(score, match_type=MatchType.HIGH, count=0, name="x", id=None):
    return MatchCandidate(taxonomy_id=id or f"id-{name}", score=score, match_type=match_type,
                          service=name, historical_request_count=count)


# ============= SCORING =============

def test_accent_only_difference_is_exact(matcher):
    score, match_type = matcher.score_with_type(normalize("Canalização"), service("Canalizacao"))
    assert score == 100
    assert match_type == MatchType.EXACT


def test_substring_containment_scales_with_length_ratio(matcher):
    score, match_type = matcher.score_with_type(normalize("Ar Condicionado Split"), service("Ar Condicionado"))
    assert match_type == MatchType.HIGH
    assert 85 <= score <= 95
    assert score == 92  # 15/21 chars


def test_longer_overlap_scores_higher(matcher):
    close, _ = matcher.score_with_type("pintura interior", service("Pintura Interior Moradias"))
    far, _ = matcher.score_with_type("pintura", service("Pintura de Interiores e Exteriores"))
    assert close > far >= 85


def test_containment_needs_whole_tokens(matcher):
    score, match_type = matcher.score_with_type("ar", service("Jardinagem"))
    assert (score, match_type) == (0, MatchType.NONE)

    # "pintura interior" is not a phrase inside "pintura interiores"
    score, match_type = matcher.score_with_type("pintura interior", service("Pintura Interiores"))
    assert match_type == MatchType.LOW
    assert score < 85


def test_in_word_fragment_is_not_auto_accepted(matcher):
    candidates = matcher.rank_candidates("ar", [service("Jardinagem"), service("Reparação de Carros")])
    assert matcher.classify(candidates).decision == Decision.REVIEW


def test_partial_lexical_overlap_without_shared_tokens_is_none(matcher):
    score, match_type = matcher.score_with_type(normalize("Jardim"), service("Jardinagem"))
    assert score == 0
    assert match_type == MatchType.NONE


@pytest.mark.parametrize("label, target, expected_score, expected_type", [
    ("limpeza de vidros", "limpeza de casas", 50, MatchType.MEDIUM),      # 2/4
    ("montagem moveis cozinha", "montagem moveis ikea", 50, MatchType.MEDIUM),
    ("reparacao maquina lavar roupa", "reparacao maquina lavar loica", 60, MatchType.HIGH),  # 3/5
    ("pintura exterior fachada", "limpeza fachada predio", 20, MatchType.LOW),  # 1/5
])
def test_token_overlap_bands(matcher, label, target, expected_score, expected_type):
    assert matcher.score_with_type(label, service(target)) == (expected_score, expected_type)


def test_reordered_tokens_are_not_exact(matcher):
    score, match_type = matcher.score_with_type("casa limpeza", service("Limpeza Casa"))
    assert score == 99
    assert match_type == MatchType.HIGH


def test_empty_target_scores_zero(matcher):
    assert matcher.score_with_type("pintura", service("  ")) == (0, MatchType.NONE)


def test_score_is_deterministic(matcher):
    entry = service("Reparação de Eletrodomésticos")
    scores = {matcher.score("reparacao eletrodomesticos", entry) for _ in range(20)}
    assert len(scores) == 1


# ============= RANKING =============

def test_rank_candidates_keeps_top_three(matcher):
    taxonomy = [service(name) for name in ("Pintura", "Pintura Interior", "Pintura Exterior", "Canalização", "Jardinagem")]
    ranked = matcher.rank_candidates("pintura", taxonomy)
    assert len(ranked) == 3
    assert ranked[0].service == "Pintura"
    assert ranked[0].match_type == MatchType.EXACT


def test_tie_prefers_more_historical_requests(matcher):
    taxonomy = [
        service("Pintura Interior", count=5),
        service("Pintura Exterior", count=40),
    ]
    ranked = matcher.rank_candidates("pintura", taxonomy)
    assert ranked[0].score == ranked[1].score
    assert ranked[0].service == "Pintura Exterior"


def test_full_tie_prefers_lexicographically_first_service(matcher):
    taxonomy = [service("Pintura Interior", count=7), service("Pintura Exterior", count=7)]
    ranked = matcher.rank_candidates("pintura", taxonomy)
    assert [c.service for c in ranked] == ["Pintura Exterior", "Pintura Interior"]


def test_ranking_does_not_depend_on_input_order(matcher):
    taxonomy = [service(f"Servico {n}", count=n % 3) for n in range(30)] + [service("Servico")]
    expected = matcher.rank_candidates("servico 1", taxonomy)
    for seed in range(5):
        shuffled = list(taxonomy)
        random.Random(seed).shuffle(shuffled)
        assert matcher.rank_candidates("servico 1", shuffled) == expected


def test_rank_against_empty_taxonomy(matcher):
    assert matcher.rank_candidates("pintura", []) == []


# ============= CLASSIFICATION =============

def test_threshold_boundary(matcher):
    assert matcher.classify([candidate(85)]).decision == Decision.AUTO
    assert matcher.classify([candidate(84, MatchType.HIGH)]).decision == Decision.REVIEW


def test_classify_picks_best_even_if_unsorted(matcher):
    result = matcher.classify([candidate(40, MatchType.MEDIUM, name="a"), candidate(90, name="b")])
    assert result.best.service == "b"
    assert result.decision == Decision.AUTO


def test_classify_tie_at_85_prefers_higher_request_count(matcher):
    low = candidate(85, count=3, name="Eletricidade Geral")
    high = candidate(85, count=12, name="Eletricista")
    result = matcher.classify([low, high])
    assert result.best == high
    assert result.decision == Decision.AUTO


def test_classify_empty_raises(matcher):
    with pytest.raises(EmptyCandidateSet):
        matcher.classify([])


def test_rank_key_orders_score_then_count_then_name():
    items = [
        candidate(50, count=1, name="b"),
        candidate(50, count=1, name="a"),
        candidate(50, count=9, name="z"),
        candidate(70, count=0, name="y"),
    ]
    assert [c.service for c in sorted(items, key=candidate_rank_key)] == ["y", "z", "a", "b"]
