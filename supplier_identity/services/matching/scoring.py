"""Name similarity scoring for the fuzzy and barcode strategies."""
from typing import Callable, List, Sequence

from rapidfuzz import fuzz, process, utils

from supplier_identity.models.matching import MatchCandidate
from supplier_identity.services.matching.catalog import CatalogProduct

# (query, choice) -> similarity in [0, 1]
NameScorer = Callable[[str, str], float]


def wratio_scorer(query: str, choice: str) -> float:
    """RapidFuzz WRatio with default preprocessing, normalized to [0, 1]."""
    return fuzz.WRatio(query, choice, processor=utils.default_process) / 100.0


def rank_candidates(
    query: str,
    products: Sequence[CatalogProduct],
    scorer: NameScorer,
    limit: int,
    score_cutoff: float = 0.0,
) -> List[MatchCandidate]:
    """Score products against query and return the best ones.

    Ordering is score descending, then product name, then id, so equal
    scores always come back in the same order. Scores are rounded to
    the four decimals supplier_items.match_confidence stores.
    """
    if limit <= 0 or not products:
        return []

    def bounded(s1: str, s2: str, **kwargs) -> float:
        # process.extract passes score_cutoff and friends as keywords
        return round(min(max(float(scorer(s1, s2)), 0.0), 1.0), 4)

    # extract keeps input order among equal scores, so pre-sorting by
    # name and id decides which ties survive the limit
    ordered = sorted(products, key=lambda p: (p.name, str(p.id)))
    choices = {index: product.match_text for index, product in enumerate(ordered)}

    # Returns list of tuples: (choice, score, key)
    matches = process.extract(
        query,
        choices,
        scorer=bounded,
        processor=None,
        score_cutoff=score_cutoff,
        limit=limit,
    )

    candidates = [
        MatchCandidate(product_id=ordered[key].id, product_name=ordered[key].name, score=score)
        for _, score, key in matches
    ]
    candidates.sort(key=lambda c: (-c.score, c.product_name, str(c.product_id)))
    return candidates
