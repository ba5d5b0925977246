"""Unit tests for the identity matcher and its strategies.

Tests cover:
    - Strategy evaluation order (exact GTIN, mapping, barcode, fuzzy)
    - GTIN variant matching through GTIN-14 normalization
    - Ambiguous barcode scans under both tie policies
    - Review threshold applied to whatever strategy won
    - Manual fallback, deterministic tie-breaking and repeatability
"""
import pytest
from uuid import uuid4

from supplier_identity.config import AmbiguousScanPolicy
from supplier_identity.models.matching import MatchCandidate, MatchMethodEnum, RawSupplierItem
from supplier_identity.services.matching import (
    CatalogProduct,
    InMemoryProductCatalog,
    create_matcher,
    rank_candidates,
    wratio_scorer,
)


def stub_scorer(scores):
    """Scorer returning fixed scores keyed by product match text."""
    return lambda query, choice: scores.get(choice, 0.0)


@pytest.fixture
def supplier_id():
    return uuid4()


@pytest.fixture
def gloves():
    return CatalogProduct(id=uuid4(), name="Nitrile Gloves M", gtin="4006381333931")


@pytest.fixture
def mask():
    return CatalogProduct(id=uuid4(), name="Surgical Mask", gtin="036000291452")


def make_item(supplier_id, **fields):
    values = {"supplier_sku": "SKU-1", "supplier_name": "Gloves nitrile medium"}
    values.update(fields)
    return RawSupplierItem(supplier_id=supplier_id, **values)


class TestRawSupplierItem:
    """Tests for raw row normalization."""

    def test_blank_codes_become_none(self, supplier_id):
        item = make_item(supplier_id, gtin="  ", scanned_code="", supplier_description=" ")

        assert item.gtin is None
        assert item.scanned_code is None
        assert item.supplier_description is None

    def test_currency_uppercased(self, supplier_id):
        assert make_item(supplier_id, currency="usd").currency == "USD"

    def test_match_text_includes_description(self, supplier_id):
        item = make_item(supplier_id, supplier_description="Box of 100")

        assert item.match_text == "Gloves nitrile medium Box of 100"

    def test_match_text_includes_brand(self, supplier_id):
        branded = make_item(supplier_id, brand="Acme", supplier_description="Box of 100")
        named = make_item(supplier_id, brand="gloves")

        assert branded.match_text == "Acme Gloves nitrile medium Box of 100"
        assert named.match_text == "Gloves nitrile medium"

    def test_blank_sku_rejected(self, supplier_id):
        with pytest.raises(ValueError):
            make_item(supplier_id, supplier_sku="   ")


class TestExactGtin:
    """Tests for the exact GTIN strategy."""

    def test_exact_gtin_links_with_full_confidence(self, supplier_id, gloves, mask, matching_config):
        matcher = create_matcher(InMemoryProductCatalog([gloves, mask]), matching_config, stub_scorer({}))

        result = matcher.resolve(make_item(supplier_id, gtin="4006381333931"))

        assert result.method == MatchMethodEnum.EXACT_GTIN
        assert result.product_id == gloves.id
        assert result.confidence == 1.0
        assert result.needs_review is False

    def test_separators_in_raw_gtin(self, supplier_id, gloves, matching_config):
        matcher = create_matcher(InMemoryProductCatalog([gloves]), matching_config, stub_scorer({}))

        result = matcher.resolve(make_item(supplier_id, gtin="400-6381-33393-1"))

        assert result.method == MatchMethodEnum.EXACT_GTIN
        assert result.product_id == gloves.id

    def test_gtin_variant_links_below_full_confidence(self, supplier_id, mask, matching_config):
        """A GTIN-13 form of a stored GTIN-12 is the same trade item."""
        matcher = create_matcher(InMemoryProductCatalog([mask]), matching_config, stub_scorer({}))

        result = matcher.resolve(make_item(supplier_id, gtin="0036000291452"))

        assert result.method == MatchMethodEnum.EXACT_GTIN
        assert result.product_id == mask.id
        assert result.confidence == 0.99
        assert result.needs_review is False

    def test_invalid_gtin_falls_through(self, supplier_id, gloves, matching_config):
        matcher = create_matcher(InMemoryProductCatalog([gloves]), matching_config, stub_scorer({}))

        result = matcher.resolve(make_item(supplier_id, gtin="4006381333932"))

        assert result.method == MatchMethodEnum.MANUAL
        assert result.product_id is None


class TestSupplierMapping:
    """Tests for curated SKU mappings."""

    def test_mapping_links_product(self, supplier_id, gloves, matching_config):
        catalog = InMemoryProductCatalog([gloves], {(supplier_id, "SKU-1"): gloves.id})
        matcher = create_matcher(catalog, matching_config, stub_scorer({}))

        result = matcher.resolve(make_item(supplier_id))

        assert result.method == MatchMethodEnum.SUPPLIER_MAPPED
        assert result.product_id == gloves.id
        assert result.confidence == 1.0
        assert result.needs_review is False

    def test_exact_gtin_wins_over_mapping(self, supplier_id, gloves, mask, matching_config):
        catalog = InMemoryProductCatalog([gloves, mask], {(supplier_id, "SKU-1"): mask.id})
        matcher = create_matcher(catalog, matching_config, stub_scorer({}))

        result = matcher.resolve(make_item(supplier_id, gtin="4006381333931"))

        assert result.method == MatchMethodEnum.EXACT_GTIN
        assert result.product_id == gloves.id

    def test_mapping_to_unknown_product_ignored(self, supplier_id, gloves, matching_config):
        catalog = InMemoryProductCatalog([gloves], {(supplier_id, "SKU-1"): uuid4()})
        matcher = create_matcher(catalog, matching_config, stub_scorer({}))

        assert matcher.resolve(make_item(supplier_id)).method == MatchMethodEnum.MANUAL

    def test_mapping_is_per_supplier(self, supplier_id, gloves, matching_config):
        catalog = InMemoryProductCatalog([gloves], {(uuid4(), "SKU-1"): gloves.id})
        matcher = create_matcher(catalog, matching_config, stub_scorer({}))

        assert matcher.resolve(make_item(supplier_id)).method == MatchMethodEnum.MANUAL


class TestBarcodeScan:
    """Tests for scanned barcode resolution."""

    @pytest.fixture
    def twins(self):
        """Two products carrying the same trade item under different GTIN lengths."""
        return [
            CatalogProduct(id=uuid4(), name="Beta Mask", gtin="036000291452"),
            CatalogProduct(id=uuid4(), name="Alpha Mask", gtin="0036000291452"),
        ]

    def test_single_hit_links_with_full_confidence(self, supplier_id, gloves, matching_config):
        matcher = create_matcher(InMemoryProductCatalog([gloves]), matching_config, stub_scorer({}))

        result = matcher.resolve(make_item(supplier_id, scanned_code="4006381333931"))

        assert result.method == MatchMethodEnum.BARCODE_SCAN
        assert result.product_id == gloves.id
        assert result.confidence == 1.0
        assert result.needs_review is False

    def test_ambiguous_scan_always_needs_review(self, supplier_id, twins, matching_config):
        beta, alpha = twins
        scorer = stub_scorer({beta.name: 0.95, alpha.name: 0.50})
        matcher = create_matcher(InMemoryProductCatalog(twins), matching_config, scorer)

        result = matcher.resolve(make_item(supplier_id, scanned_code="036000291452"))

        assert result.method == MatchMethodEnum.BARCODE_SCAN
        assert result.product_id == beta.id
        assert result.confidence == 0.95
        assert result.needs_review is True
        assert [c.product_id for c in result.candidates] == [beta.id, alpha.id]

    def test_tie_under_manual_review_policy(self, supplier_id, twins, matching_config):
        scorer = stub_scorer({p.name: 0.80 for p in twins})
        matcher = create_matcher(InMemoryProductCatalog(twins), matching_config, scorer)

        result = matcher.resolve(make_item(supplier_id, scanned_code="036000291452"))

        assert result.method == MatchMethodEnum.MANUAL
        assert result.product_id is None
        assert result.confidence is None
        assert result.needs_review is True
        assert len(result.candidates) == 2

    def test_tie_under_best_candidate_policy(self, supplier_id, twins, matching_config):
        beta, alpha = twins
        config = matching_config.model_copy(
            update={"ambiguous_scan_policy": AmbiguousScanPolicy.BEST_CANDIDATE}
        )
        scorer = stub_scorer({p.name: 0.80 for p in twins})
        matcher = create_matcher(InMemoryProductCatalog(twins), config, scorer)

        result = matcher.resolve(make_item(supplier_id, scanned_code="036000291452"))

        assert result.method == MatchMethodEnum.BARCODE_SCAN
        assert result.product_id == alpha.id  # name order breaks the tie
        assert result.needs_review is True


class TestFuzzyName:
    """Tests for the fuzzy name strategy and the review threshold."""

    def test_score_below_threshold_needs_review(self, supplier_id, gloves, matching_config):
        matcher = create_matcher(
            InMemoryProductCatalog([gloves]), matching_config, stub_scorer({gloves.name: 0.85})
        )

        result = matcher.resolve(make_item(supplier_id))

        assert result.method == MatchMethodEnum.FUZZY_NAME
        assert result.product_id == gloves.id
        assert result.confidence == 0.85
        assert result.needs_review is True

    def test_score_above_threshold_is_linked(self, supplier_id, gloves, matching_config):
        matcher = create_matcher(
            InMemoryProductCatalog([gloves]), matching_config, stub_scorer({gloves.name: 0.95})
        )

        result = matcher.resolve(make_item(supplier_id))

        assert result.method == MatchMethodEnum.FUZZY_NAME
        assert result.needs_review is False

    def test_below_floor_falls_back_to_manual(self, supplier_id, gloves, matching_config):
        matcher = create_matcher(
            InMemoryProductCatalog([gloves]), matching_config, stub_scorer({gloves.name: 0.65})
        )

        result = matcher.resolve(make_item(supplier_id))

        assert result.method == MatchMethodEnum.MANUAL
        assert result.product_id is None
        assert result.confidence is None
        assert result.needs_review is True
        assert result.candidates == []

    def test_empty_catalog_falls_back_to_manual(self, supplier_id, matching_config):
        matcher = create_matcher(InMemoryProductCatalog([]), matching_config, stub_scorer({}))

        assert matcher.resolve(make_item(supplier_id)).method == MatchMethodEnum.MANUAL

    def test_candidates_are_capped(self, supplier_id, matching_config):
        products = [CatalogProduct(id=uuid4(), name=f"Gloves {i}") for i in range(8)]
        scorer = stub_scorer({p.name: 0.75 + i * 0.01 for i, p in enumerate(products)})
        matcher = create_matcher(InMemoryProductCatalog(products), matching_config, scorer)

        result = matcher.resolve(make_item(supplier_id))

        assert len(result.candidates) == matching_config.max_candidates
        assert result.product_id == products[-1].id
        scores = [c.score for c in result.candidates]
        assert scores == sorted(scores, reverse=True)

    def test_equal_scores_break_ties_by_name(self, supplier_id, matching_config):
        beta = CatalogProduct(id=uuid4(), name="Beta gloves")
        alpha = CatalogProduct(id=uuid4(), name="Alpha gloves")
        scorer = stub_scorer({beta.name: 0.80, alpha.name: 0.80})
        matcher = create_matcher(InMemoryProductCatalog([beta, alpha]), matching_config, scorer)

        result = matcher.resolve(make_item(supplier_id))

        assert result.product_id == alpha.id

    def test_resolve_is_repeatable(self, supplier_id, gloves, mask, matching_config):
        scorer = stub_scorer({gloves.name: 0.82, mask.name: 0.71})
        matcher = create_matcher(InMemoryProductCatalog([gloves, mask]), matching_config, scorer)
        item = make_item(supplier_id)

        assert matcher.resolve(item) == matcher.resolve(item)

    def test_brand_is_part_of_match_text(self):
        product = CatalogProduct(id=uuid4(), name="Nitrile Gloves M", brand="Acme")

        assert product.match_text == "Acme Nitrile Gloves M"
        assert CatalogProduct(id=uuid4(), name="Acme Gloves", brand="acme").match_text == "Acme Gloves"


class TestScoring:
    """Tests for RapidFuzz-backed scoring."""

    def test_identical_strings_score_one(self):
        assert wratio_scorer("Nitrile Gloves", "nitrile GLOVES") == 1.0

    def test_real_scorer_picks_similar_product(self, supplier_id, gloves, mask, matching_config):
        matcher = create_matcher(InMemoryProductCatalog([gloves, mask]), matching_config)

        result = matcher.resolve(make_item(supplier_id, supplier_name="Nitrile Gloves Medium"))

        assert result.method == MatchMethodEnum.FUZZY_NAME
        assert result.product_id == gloves.id

    def test_rank_candidates_clamps_and_rounds(self, gloves):
        ranked = rank_candidates("anything", [gloves], lambda q, c: 1.23456, limit=5)

        assert ranked[0].score == 1.0

    def test_rank_candidates_breaks_ties_before_limit(self):
        products = [
            CatalogProduct(id=uuid4(), name="Gamma Gloves"),
            CatalogProduct(id=uuid4(), name="Alpha Gloves"),
            CatalogProduct(id=uuid4(), name="Beta Gloves"),
        ]

        ranked = rank_candidates("gloves", products, lambda q, c: 0.8, limit=2)

        assert [c.product_name for c in ranked] == ["Alpha Gloves", "Beta Gloves"]

    def test_rank_candidates_applies_cutoff(self, gloves, mask):
        scores = {gloves.match_text: 0.9, mask.match_text: 0.4}

        ranked = rank_candidates("gloves", [mask, gloves], stub_scorer(scores), limit=5, score_cutoff=0.7)

        assert [c.product_id for c in ranked] == [gloves.id]

    def test_candidate_to_dict(self):
        product_id = uuid4()
        candidate = MatchCandidate(product_id=product_id, product_name="Nitrile Gloves M", score=0.876543)

        assert candidate.to_dict() == {
            "product_id": str(product_id),
            "product_name": "Nitrile Gloves M",
            "score": 0.8765,
        }
