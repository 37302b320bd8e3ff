"""Tests for FuzzyMatcher batch and incremental paths.

Name scores used below (normalized Jaro-Winkler):
    "hemnes dresser 6 drawer"  vs "hemnes dresser 6 drawers"   ~0.9917
    "hemnes dresser 6 drawer"  vs "hemnes dresser 8 drawer"    ~0.9826
    "ikea kallax 4 shelf unit" vs "kallax shelving unit 4 cube" ~0.7176
"""
import pytest

from crossmatch.config import MatchingSettings
from crossmatch.models import MatchType
from crossmatch.services.matching import FuzzyMatcher


@pytest.fixture
def matcher(session_maker):
    return FuzzyMatcher(session_maker, config=MatchingSettings())


class TestRunFuzzyMatching:
    """Tests for the batch fuzzy matcher."""

    @pytest.mark.asyncio
    async def test_auto_links_close_pair(self, matcher, make_product, load_product):
        a = await make_product("ikea", name="Kallax shelf unit white", width="77 cm", height="147 cm")
        b = await make_product("wayfair", name="Kallax shelving unit white", width="77 cm", height="147cm")

        run = await matcher.run_fuzzy_matching()

        assert len(run.auto_matches) == 1
        result = run.auto_matches[0]
        assert result.match_type == MatchType.FUZZY
        assert result.match_field == "name+dimensions"
        assert result.confidence == pytest.approx(0.919626 * 0.7 + 0.3, abs=1e-5)
        assert [p.product_id for p in result.products] == [a.id, b.id]

        linked_a = await load_product(a.id)
        linked_b = await load_product(b.id)
        assert linked_a.match_group_id == linked_b.match_group_id == result.match_group_id
        assert linked_a.match_confidence == pytest.approx(result.confidence)

    @pytest.mark.asyncio
    async def test_review_band_pair_is_reported_not_written(self, matcher, make_product, load_product):
        a = await make_product("ikea", name="IKEA KALLAX 4-shelf unit", width='57 7/8"')
        b = await make_product("wayfair", name="Kallax Shelving Unit, 4 Cube", width="58 in")

        run = await matcher.run_fuzzy_matching()

        assert run.auto_matches == []
        assert len(run.review_candidates) == 1
        candidate = run.review_candidates[0]
        assert candidate.product_a.product_id == a.id
        assert candidate.product_b.product_id == b.id
        assert candidate.dimension_score == pytest.approx(57 / 58)
        assert 0.70 <= candidate.overall_score < 0.85
        assert candidate.overall_score == pytest.approx(
            candidate.name_score * 0.7 + candidate.dimension_score * 0.3
        )
        assert (await load_product(a.id)).match_group_id is None
        assert (await load_product(b.id)).match_group_id is None

    @pytest.mark.asyncio
    async def test_identical_names_without_dimensions_reach_threshold(self, matcher, make_product):
        """Name 1.0 plus the neutral dimension score lands exactly on 0.85."""
        await make_product("ikea", name="Billy bookcase white")
        await make_product("wayfair", name="Billy bookcase, white")

        run = await matcher.run_fuzzy_matching()

        assert len(run.auto_matches) == 1
        assert run.auto_matches[0].confidence == pytest.approx(0.85)

    @pytest.mark.asyncio
    async def test_dissimilar_names_not_reported(self, matcher, make_product):
        await make_product("ikea", name="Billy bookcase", width="80 cm")
        await make_product("wayfair", name="Malm dresser", width="80 cm")

        run = await matcher.run_fuzzy_matching()

        assert run.auto_matches == []
        assert run.review_candidates == []

    @pytest.mark.asyncio
    async def test_best_candidate_wins_not_first(self, matcher, make_product, load_product):
        a1 = await make_product("ikea", name="Hemnes dresser 6 drawer", width="60 cm")
        a2 = await make_product("ikea", name="Hemnes dresser 8 drawer", width="60 cm")
        b1 = await make_product("wayfair", name="Hemnes dresser 8 drawer", width="60 cm")
        b2 = await make_product("wayfair", name="Hemnes dresser, 6 drawers", width="60 cm")

        run = await matcher.run_fuzzy_matching()

        pairs = [[p.product_id for p in m.products] for m in run.auto_matches]
        assert pairs == [[a1.id, b2.id], [a2.id, b1.id]]
        assert (await load_product(a1.id)).match_group_id == (await load_product(b2.id)).match_group_id
        assert (await load_product(a2.id)).match_group_id == (await load_product(b1.id)).match_group_id

    @pytest.mark.asyncio
    async def test_greedy_assignment_is_order_dependent(self, matcher, make_product, load_product):
        """The first source record consumes the counterpart even if a later one scores higher."""
        a1 = await make_product("ikea", name="Hemnes dresser 6 drawer", width="60 cm")
        a2 = await make_product("ikea", name="Hemnes dresser, 6 drawers", width="60 cm")
        b1 = await make_product("wayfair", name="Hemnes dresser, 6 drawers", width="60 cm")

        run = await matcher.run_fuzzy_matching()

        assert len(run.auto_matches) == 1
        assert [p.product_id for p in run.auto_matches[0].products] == [a1.id, b1.id]
        assert (await load_product(a2.id)).match_group_id is None

    @pytest.mark.asyncio
    async def test_records_matched_at_most_once_per_run(self, matcher, make_product):
        await make_product("ikea", name="Kallax shelf unit white", width="77 cm")
        await make_product("wayfair", name="Kallax shelf unit white", width="77 cm")
        await make_product("target", name="Kallax shelf unit white", width="77 cm")

        run = await matcher.run_fuzzy_matching()

        matched_ids = [p.product_id for m in run.auto_matches for p in m.products]
        assert len(matched_ids) == len(set(matched_ids)) == 2

    @pytest.mark.asyncio
    async def test_single_retailer_returns_empty(self, matcher, make_product):
        await make_product("ikea", name="Billy bookcase")
        await make_product("ikea", name="Billy bookcase")
        await make_product("wayfair", name=None)

        run = await matcher.run_fuzzy_matching()

        assert run.auto_matches == []
        assert run.review_candidates == []

    @pytest.mark.asyncio
    async def test_grouped_records_excluded(self, matcher, make_product):
        await make_product("ikea", name="Billy bookcase white", match_group_id="g1", match_confidence=1.0)
        await make_product("wayfair", name="Billy bookcase white")
        await make_product("target", name="Malm dresser")

        run = await matcher.run_fuzzy_matching()

        assert run.auto_matches == []

    @pytest.mark.asyncio
    async def test_batch_cap_limits_each_side(self, session_maker, make_product):
        matcher = FuzzyMatcher(session_maker, config=MatchingSettings(max_batch_size=1))
        await make_product("ikea", name="Malm dresser")
        await make_product("ikea", name="Billy bookcase white")
        await make_product("wayfair", name="Billy bookcase white")

        run = await matcher.run_fuzzy_matching()

        # Only the first ikea record is fetched, so the identical pair is never compared
        assert run.auto_matches == []


class TestMatchProductFuzzy:
    """Tests for the incremental fuzzy matcher."""

    @pytest.mark.asyncio
    async def test_best_auto_match_and_review_candidates(self, matcher, make_product, load_product):
        product = await make_product("ikea", name="Malm bed frame queen", width="160 cm")
        headboard = await make_product("wayfair", name="Malm headboard", width="100 cm")
        hemnes = await make_product("wayfair", name="Hemnes bed frame", width="160 cm")
        near = await make_product("target", name="Malm bed frame queen size", width="160 cm")
        best = await make_product("wayfair", name="Malm bed frame queen", width="160 cm")
        await make_product("wayfair", name="Billy bookcase", width="160 cm")
        await make_product("ikea", name="Malm bed frame queen", width="160 cm")
        await make_product("wayfair", name="Malm bed frame queen", match_group_id="g1", match_confidence=1.0)
        await make_product("wayfair", name=None, width="160 cm")

        outcome = await matcher.match_product_fuzzy(product.id)

        assert outcome.match is not None
        assert outcome.match.confidence == pytest.approx(1.0)
        assert [p.product_id for p in outcome.match.products] == [product.id, best.id]
        assert [c.product_b.product_id for c in outcome.review_candidates] == [headboard.id, hemnes.id]
        for candidate in outcome.review_candidates:
            assert 0.70 <= candidate.overall_score < 0.85

        assert (await load_product(product.id)).match_group_id == outcome.match.match_group_id
        assert (await load_product(best.id)).match_group_id == outcome.match.match_group_id
        # auto-eligible but not best: neither written nor reported
        assert (await load_product(near.id)).match_group_id is None

    @pytest.mark.asyncio
    async def test_ties_go_to_first_candidate(self, matcher, make_product):
        product = await make_product("ikea", name="Billy bookcase white")
        first = await make_product("wayfair", name="Billy bookcase white")
        await make_product("target", name="Billy bookcase white")

        outcome = await matcher.match_product_fuzzy(product.id)

        assert outcome.match.products[1].product_id == first.id

    @pytest.mark.asyncio
    async def test_review_only(self, matcher, make_product, load_product):
        product = await make_product("ikea", name="IKEA KALLAX 4-shelf unit", width='57 7/8"')
        await make_product("wayfair", name="Kallax Shelving Unit, 4 Cube", width="58 in")

        outcome = await matcher.match_product_fuzzy(product.id)

        assert outcome.match is None
        assert len(outcome.review_candidates) == 1
        assert (await load_product(product.id)).match_group_id is None

    @pytest.mark.asyncio
    async def test_product_without_name_matches_nothing(self, matcher, make_product):
        product = await make_product("ikea", name=None, width="160 cm")
        await make_product("wayfair", name="Malm bed frame queen", width="160 cm")
        await make_product("target", name="Billy bookcase", width="160 cm")

        outcome = await matcher.match_product_fuzzy(product.id)

        assert outcome.match is None
        assert outcome.review_candidates == []

    @pytest.mark.asyncio
    async def test_grouped_product_matches_nothing(self, matcher, make_product):
        product = await make_product("ikea", name="Billy bookcase white", match_group_id="g1", match_confidence=1.0)
        await make_product("wayfair", name="Billy bookcase white")

        outcome = await matcher.match_product_fuzzy(product.id)

        assert outcome.match is None
        assert outcome.review_candidates == []

    @pytest.mark.asyncio
    async def test_missing_product(self, matcher):
        outcome = await matcher.match_product_fuzzy(9999)

        assert outcome.match is None
        assert outcome.review_candidates == []
