"""
Rule-based intelligence layer: urgency, problems, escalation and actions.
"""

from .actions import ActionExecutionResult, ActionRecommender, RecommendedAction
from .escalation import EscalationManager, generate_ticket_id
from .problems import ExtractedProblem, ProblemExtractor, is_critical_problem
from .urgency import UrgencyEstimator, UrgencyScore, get_urgency_priority, urgency_level

__all__ = [
    "ActionExecutionResult",
    "ActionRecommender",
    "RecommendedAction",
    "EscalationManager",
    "generate_ticket_id",
    "ExtractedProblem",
    "ProblemExtractor",
    "is_critical_problem",
    "UrgencyEstimator",
    "UrgencyScore",
    "get_urgency_priority",
    "urgency_level",
]
