"""Tests for mention/entity similarity scoring."""

from datetime import datetime, timedelta

import pytest

from memory.models import Entity, EntityType, ExtractedMention, Fact
from memory.scoring import (
    NEVER_ACCESSED_SCORE,
    combined_score,
    context_score,
    name_similarity,
    recency_score,
    score_candidate,
    significant_words,
    slugify,
)

NOW = datetime(2026, 3, 2, 12, 0, 0)


class TestSlugify:
    def test_basic(self):
        assert slugify("Adam Watson") == "adam-watson"

    def test_punctuation_collapses(self):
        assert slugify("  Acme, Inc. ") == "acme-inc"

    def test_nothing_usable(self):
        assert slugify("!!!") == ""


class TestNameSimilarity:
    def test_exact_ignores_case(self):
        assert name_similarity("adam watson", "Adam Watson") == 1.0

    def test_first_name_prefix(self):
        assert name_similarity("Adam", "Adam Watson") == pytest.approx(0.7 + 0.2 * 4 / 11)

    def test_token_match(self):
        assert name_similarity("Watson", "Adam Watson") == pytest.approx(0.65)

    def test_substring_only(self):
        assert name_similarity("Wat", "Adam Watson") == 0.3

    def test_unrelated(self):
        assert name_similarity("Bob", "Adam Watson") == 0.0

    def test_empty(self):
        assert name_similarity("", "Adam Watson") == 0.0
        assert name_similarity("Adam", "  ") == 0.0


class TestRecencyScore:
    def test_never_accessed(self):
        assert recency_score(None, NOW) == NEVER_ACCESSED_SCORE

    def test_within_hour(self):
        assert recency_score(NOW - timedelta(minutes=30), NOW) == 1.0

    def test_within_day(self):
        assert recency_score(NOW - timedelta(hours=12), NOW) == pytest.approx(0.9)

    def test_within_week(self):
        assert recency_score(NOW - timedelta(hours=84), NOW) == pytest.approx(0.65)

    def test_exponential_tail(self):
        assert recency_score(NOW - timedelta(hours=720), NOW) == pytest.approx(0.5 * 2.718281828 ** -1)

    def test_floor(self):
        assert recency_score(NOW - timedelta(days=400), NOW) == NEVER_ACCESSED_SCORE

    def test_non_increasing_across_boundaries(self):
        hours = [0, 0.5, 0.99, 1, 1.01, 12, 23.99, 24, 24.01, 100, 167.99, 168, 168.01]
        hours += [500, 719.99, 720, 720.01, 2000, 10000]
        scores = [recency_score(NOW - timedelta(hours=h), NOW) for h in hours]
        assert all(a >= b for a, b in zip(scores, scores[1:]))


class TestContextScore:
    def test_empty_sides(self):
        assert context_score([], ["Works at Acme"]) == 0.0
        assert context_score(["Works at Acme"], []) == 0.0

    def test_partial_overlap(self):
        # entity words: works, acme, likes, coffee -> one hit / sqrt(4)
        assert context_score(["Likes hiking"], ["Works at Acme", "Likes coffee"]) == pytest.approx(0.5)

    def test_saturates_at_one(self):
        assert context_score(["Works at Acme on launch"], ["Works at Acme", "Leads the launch"]) == 1.0

    def test_repeated_entity_words_count_each_time(self):
        entity_facts = ["acme acme delta gamma omega sigma zeta kappa theta"]
        assert context_score(["acme"], entity_facts) == pytest.approx(2 / 3)

    def test_stop_words_and_short_words_ignored(self):
        assert significant_words("The Q3 plan is at Acme") == ["plan", "acme"]


class TestScoreCandidate:
    def test_weights_sum_to_one(self):
        assert combined_score(1.0, 1.0, 1.0) == pytest.approx(1.0)

    def test_no_name_overlap_is_not_a_candidate(self):
        mention = ExtractedMention(name="Bob", type=EntityType.PERSON)
        entity = Entity(slug="adam-watson", name="Adam Watson", type=EntityType.PERSON)
        assert score_candidate(mention, entity, NOW) is None

    def test_exact_name_never_accessed(self):
        mention = ExtractedMention(name="Adam Watson", type=EntityType.PERSON)
        entity = Entity(slug="adam-watson", name="Adam Watson", type=EntityType.PERSON)
        candidate = score_candidate(mention, entity, NOW)
        assert candidate.score == pytest.approx(0.5 + 0.15 * NEVER_ACCESSED_SCORE)
        assert candidate.reasons == ["name match: 100%"]

    def test_reasons_include_context_and_recency(self):
        fact = Fact(id="f1", text="Works at Acme", last_accessed=NOW - timedelta(minutes=5))
        entity = Entity(
            slug="adam-watson", name="Adam Watson", type=EntityType.PERSON, facts=[fact]
        )
        mention = ExtractedMention(
            name="Adam Watson", type=EntityType.PERSON, facts=["Works at Acme now"]
        )
        candidate = score_candidate(mention, entity, NOW)
        assert candidate.score == pytest.approx(1.0)
        assert "recently active" in candidate.reasons
        assert any(r.startswith("context overlap") for r in candidate.reasons)

    def test_archived_facts_do_not_count_as_context(self):
        fact = Fact(id="f1", text="Works at Acme")
        fact.archive()
        entity = Entity(
            slug="adam-watson", name="Adam Watson", type=EntityType.PERSON, facts=[fact]
        )
        mention = ExtractedMention(
            name="Adam Watson", type=EntityType.PERSON, facts=["Works at Acme"]
        )
        candidate = score_candidate(mention, entity, NOW)
        assert not any(r.startswith("context") for r in candidate.reasons)
