"""Search orchestration and result reconciliation."""

from .orchestrator import SEARCH_PLANS, STRATEGY_ALIASES, PlanStep, SearchOrchestrator
from .reconciler import ReconciledResult, reconcile

__all__ = [
    "SearchOrchestrator",
    "PlanStep",
    "SEARCH_PLANS",
    "STRATEGY_ALIASES",
    "ReconciledResult",
    "reconcile",
]
