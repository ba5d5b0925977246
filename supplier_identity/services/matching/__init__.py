"""Identity matching services.

Key Components:
    - IdentityMatcher / create_matcher: Ordered strategy resolution
    - ProductCatalog / InMemoryProductCatalog / load_catalog: Product lookup
    - wratio_scorer: Default name similarity (RapidFuzz WRatio)
"""
from supplier_identity.services.matching.catalog import (
    CatalogProduct,
    ProductCatalog,
    InMemoryProductCatalog,
    load_catalog,
)
from supplier_identity.services.matching.scoring import NameScorer, rank_candidates, wratio_scorer
from supplier_identity.services.matching.matcher import (
    StrategyOutcome,
    MatchStrategy,
    ExactGtinStrategy,
    SupplierMappingStrategy,
    BarcodeScanStrategy,
    FuzzyNameStrategy,
    IdentityMatcher,
    create_matcher,
)

__all__ = [
    "CatalogProduct",
    "ProductCatalog",
    "InMemoryProductCatalog",
    "load_catalog",
    "NameScorer",
    "rank_candidates",
    "wratio_scorer",
    "StrategyOutcome",
    "MatchStrategy",
    "ExactGtinStrategy",
    "SupplierMappingStrategy",
    "BarcodeScanStrategy",
    "FuzzyNameStrategy",
    "IdentityMatcher",
    "create_matcher",
]
