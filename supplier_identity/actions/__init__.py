"""Action entry points returning typed results."""
from supplier_identity.actions.base import run_action, require_platform_reviewer, require_supplier_scope
from supplier_identity.actions.correction_actions import CorrectionActions
from supplier_identity.actions.triage_actions import TriageActions

__all__ = [
    "run_action",
    "require_platform_reviewer",
    "require_supplier_scope",
    "CorrectionActions",
    "TriageActions",
]
