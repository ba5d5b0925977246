"""Identity matcher resolving raw supplier rows to canonical products.

This module implements the Strategy pattern: an ordered list of
matching strategies is tried and the first one that produces an
outcome wins. Anything left over falls back to manual review.

Key Components:
    - MatchStrategy: Abstract base class for one matching technique
    - ExactGtinStrategy / SupplierMappingStrategy / BarcodeScanStrategy /
      FuzzyNameStrategy: The built-in strategies, in evaluation order
    - IdentityMatcher: Runs the strategies and applies the review threshold
    - create_matcher: Factory wiring the default strategy chain
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from uuid import UUID
import structlog

from supplier_identity.config import AmbiguousScanPolicy, MatchingSettings, matching_settings
from supplier_identity.models.matching import MatchCandidate, MatchMethodEnum, MatchResult, RawSupplierItem
from supplier_identity.services.gtin import clean_gtin, validate
from supplier_identity.services.matching.catalog import ProductCatalog
from supplier_identity.services.matching.scoring import NameScorer, rank_candidates, wratio_scorer

logger = structlog.get_logger(__name__)


@dataclass
class StrategyOutcome:
    """What a strategy decided, before the review threshold is applied.

    Attributes:
        method: Strategy that produced the outcome
        confidence: Confidence in [0, 1], None when nothing was linked
        product_id: Linked product (if any)
        candidates: Ranked alternatives kept for the reviewer
        force_review: Send to review regardless of confidence
    """
    method: MatchMethodEnum
    confidence: Optional[float] = None
    product_id: Optional[UUID] = None
    candidates: List[MatchCandidate] = field(default_factory=list)
    force_review: bool = False


class MatchStrategy(ABC):
    """Abstract base class for identity matching strategies.

    All implementations must honor the contract:
        - try_match() returns None when the strategy does not apply
        - try_match() never raises on malformed raw data
        - Identical inputs always produce identical outcomes
    """

    name: str = "abstract"

    @abstractmethod
    def try_match(self, item: RawSupplierItem, catalog: ProductCatalog) -> Optional[StrategyOutcome]:
        """Attempt to resolve the item against the catalog."""
        pass


class ExactGtinStrategy(MatchStrategy):
    """Raw GTIN equal to a product GTIN.

    When there is no exact hit but exactly one product carries the same
    trade item under another GTIN length (same GTIN-14), that product is
    linked with a slightly lower confidence.
    """

    name = "exact_gtin"

    def __init__(self, variant_confidence: float = 0.99):
        self.variant_confidence = variant_confidence

    def try_match(self, item: RawSupplierItem, catalog: ProductCatalog) -> Optional[StrategyOutcome]:
        if not item.gtin:
            return None

        product = catalog.find_by_gtin(clean_gtin(item.gtin))
        if product is not None:
            return StrategyOutcome(
                method=MatchMethodEnum.EXACT_GTIN,
                confidence=1.0,
                product_id=product.id,
            )

        if not validate(item.gtin).valid:
            return None

        variants = catalog.find_equivalent_gtin(item.gtin)
        if len(variants) == 1:
            return StrategyOutcome(
                method=MatchMethodEnum.EXACT_GTIN,
                confidence=self.variant_confidence,
                product_id=variants[0].id,
            )
        return None


class SupplierMappingStrategy(MatchStrategy):
    """Curated (supplier, SKU) -> product mapping."""

    name = "supplier_mapped"

    def try_match(self, item: RawSupplierItem, catalog: ProductCatalog) -> Optional[StrategyOutcome]:
        product_id = catalog.find_mapping(item.supplier_id, item.supplier_sku)
        if product_id is None:
            return None
        return StrategyOutcome(
            method=MatchMethodEnum.SUPPLIER_MAPPED,
            confidence=1.0,
            product_id=product_id,
        )


class BarcodeScanStrategy(MatchStrategy):
    """Scanned barcode resolving to product GTINs.

    One hit links with full confidence. Several hits are ranked by name
    similarity and always go to review; an exact tie at the top is
    handled according to the configured AmbiguousScanPolicy.
    """

    name = "barcode_scan"

    def __init__(
        self,
        scorer: NameScorer,
        policy: AmbiguousScanPolicy = AmbiguousScanPolicy.MANUAL_REVIEW,
        max_candidates: int = 5,
    ):
        self.scorer = scorer
        self.policy = policy
        self.max_candidates = max_candidates

    def try_match(self, item: RawSupplierItem, catalog: ProductCatalog) -> Optional[StrategyOutcome]:
        if not item.scanned_code:
            return None

        hits = catalog.find_equivalent_gtin(item.scanned_code)
        if not hits:
            return None

        if len(hits) == 1:
            return StrategyOutcome(
                method=MatchMethodEnum.BARCODE_SCAN,
                confidence=1.0,
                product_id=hits[0].id,
            )

        candidates = rank_candidates(
            item.match_text,
            hits,
            self.scorer,
            limit=max(self.max_candidates, 2),
        )
        best = candidates[0]
        tied = candidates[1].score == best.score

        if tied and self.policy == AmbiguousScanPolicy.MANUAL_REVIEW:
            return StrategyOutcome(
                method=MatchMethodEnum.MANUAL,
                candidates=candidates[:self.max_candidates],
                force_review=True,
            )

        return StrategyOutcome(
            method=MatchMethodEnum.BARCODE_SCAN,
            confidence=best.score,
            product_id=best.product_id,
            candidates=candidates[:self.max_candidates],
            force_review=True,
        )


class FuzzyNameStrategy(MatchStrategy):
    """Name/description similarity above a minimum floor."""

    name = "fuzzy_name"

    def __init__(self, scorer: NameScorer, floor: float = 0.70, max_candidates: int = 5):
        self.scorer = scorer
        self.floor = floor
        self.max_candidates = max_candidates

    def try_match(self, item: RawSupplierItem, catalog: ProductCatalog) -> Optional[StrategyOutcome]:
        products = catalog.products()
        if not products:
            return None

        candidates = rank_candidates(
            item.match_text,
            products,
            self.scorer,
            limit=self.max_candidates,
            score_cutoff=self.floor,
        )
        if not candidates:
            return None

        best = candidates[0]
        return StrategyOutcome(
            method=MatchMethodEnum.FUZZY_NAME,
            confidence=best.score,
            product_id=best.product_id,
            candidates=candidates,
        )


class IdentityMatcher:
    """Resolve raw supplier rows to canonical products.

    The review threshold is applied here, uniformly, to whatever the
    winning strategy produced: anything without confidence or below
    the threshold needs review.

    Attributes:
        catalog: Product lookup for this run
        strategies: Ordered strategies; first outcome wins
        review_threshold: Confidence below this needs review
    """

    def __init__(
        self,
        catalog: ProductCatalog,
        strategies: Sequence[MatchStrategy],
        review_threshold: float = 0.90,
    ):
        self.catalog = catalog
        self.strategies = list(strategies)
        self.review_threshold = review_threshold
        self._log = logger.bind(matcher="IdentityMatcher")

    def needs_review(self, confidence: Optional[float]) -> bool:
        return confidence is None or confidence < self.review_threshold

    def resolve(self, item: RawSupplierItem) -> MatchResult:
        """Resolve one raw row.

        Args:
            item: Raw catalog row

        Returns:
            MatchResult; never raises for unmatched items
        """
        for strategy in self.strategies:
            outcome = strategy.try_match(item, self.catalog)
            if outcome is None:
                continue

            result = MatchResult(
                method=outcome.method,
                confidence=outcome.confidence,
                product_id=outcome.product_id,
                needs_review=outcome.force_review or self.needs_review(outcome.confidence),
                candidates=outcome.candidates,
            )
            self._log.debug(
                "match_completed",
                supplier_id=str(item.supplier_id),
                supplier_sku=item.supplier_sku,
                strategy=strategy.name,
                method=result.method.value,
                confidence=result.confidence,
                needs_review=result.needs_review,
                candidates_count=len(result.candidates),
            )
            return result

        self._log.debug(
            "match_fallback_manual",
            supplier_id=str(item.supplier_id),
            supplier_sku=item.supplier_sku,
        )
        return MatchResult(method=MatchMethodEnum.MANUAL, needs_review=True)


def create_matcher(
    catalog: ProductCatalog,
    settings: Optional[MatchingSettings] = None,
    scorer: Optional[NameScorer] = None,
) -> IdentityMatcher:
    """Factory function wiring the default strategy chain.

    Args:
        catalog: Product lookup for this run
        settings: Matching settings (defaults to the global instance)
        scorer: Name similarity function (defaults to RapidFuzz WRatio)

    Returns:
        IdentityMatcher with exact GTIN, supplier mapping, barcode scan
        and fuzzy name strategies, in that order
    """
    settings = settings or matching_settings
    scorer = scorer or wratio_scorer

    strategies: List[MatchStrategy] = [
        ExactGtinStrategy(variant_confidence=settings.gtin_variant_confidence),
        SupplierMappingStrategy(),
        BarcodeScanStrategy(
            scorer=scorer,
            policy=settings.ambiguous_scan_policy,
            max_candidates=settings.max_candidates,
        ),
        FuzzyNameStrategy(
            scorer=scorer,
            floor=settings.fuzzy_floor,
            max_candidates=settings.max_candidates,
        ),
    ]
    return IdentityMatcher(
        catalog=catalog,
        strategies=strategies,
        review_threshold=settings.review_threshold,
    )
