"""Review queue (triage) services.

Key Components:
    - TriageService: Queue reads, navigation, stats and terminal actions
    - ProductMerger / SupplierLinkMerger: Merge collaborator
"""
from supplier_identity.services.triage.merger import ProductMerger, SupplierLinkMerger
from supplier_identity.services.triage.service import TriageService

__all__ = ["ProductMerger", "SupplierLinkMerger", "TriageService"]
