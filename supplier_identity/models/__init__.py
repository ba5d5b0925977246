"""Pydantic validation models."""

# Identity resolution models
from supplier_identity.models.matching import (
    MatchMethodEnum,
    RawSupplierItem,
    MatchCandidate,
    MatchResult,
    IngestionMetrics,
)

# Correction workflow models
from supplier_identity.models.corrections import (
    CORRECTION_DATA_VERSION,
    CorrectionStatusEnum,
    CorrectionFields,
    ProposedCorrection,
    SaveDraftResult,
    CorrectionStatusCounts,
    CorrectionView,
)

# Review queue models
from supplier_identity.models.triage import (
    IssueType,
    TriageFilters,
    TriageItem,
    QueuePosition,
    TriageStats,
    NewProductData,
    MergeOutcome,
)

# Action boundary models
from supplier_identity.models.actions import ActorContext, ActionResult

__all__ = [
    "MatchMethodEnum",
    "RawSupplierItem",
    "MatchCandidate",
    "MatchResult",
    "IngestionMetrics",
    "CORRECTION_DATA_VERSION",
    "CorrectionStatusEnum",
    "CorrectionFields",
    "ProposedCorrection",
    "SaveDraftResult",
    "CorrectionStatusCounts",
    "CorrectionView",
    "IssueType",
    "TriageFilters",
    "TriageItem",
    "QueuePosition",
    "TriageStats",
    "NewProductData",
    "MergeOutcome",
    "ActorContext",
    "ActionResult",
]
