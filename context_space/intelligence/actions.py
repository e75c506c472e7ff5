"""
Action recommendation and execution.

Recommendations are heuristic per problem category, always followed by a
human escalation when the problem is not agent-solvable, and ranked by
``priority * 0.6 + confidence * 0.4``. Only auto-executable actions run
without an explicit approval.
"""

import logging
import re
import secrets
import string
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .problems import ExtractedProblem
from .urgency import UrgencyScore

logger = logging.getLogger(__name__)

ACTION_TYPES = (
    "provide_info",
    "check_status",
    "update_account",
    "process_refund",
    "escalate",
    "follow_up",
    "apologize",
    "offer_compensation",
    "update_order",
    "cancel_order",
)

ORDER_ID = re.compile(r"^[A-Z]{2,}\d+$")
_ACTION_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class RecommendedAction:
    id: str
    type: str
    description: str
    confidence: float
    priority: float
    can_auto_execute: bool
    parameters: dict[str, Any] = field(default_factory=dict)

    @property
    def rank(self) -> float:
        return self.priority * 0.6 + self.confidence * 0.4

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "description": self.description,
            "confidence": round(self.confidence, 4),
            "priority": round(self.priority, 4),
            "can_auto_execute": self.can_auto_execute,
            "parameters": dict(self.parameters),
        }


@dataclass
class ActionExecutionResult:
    action_id: str
    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action_id": self.action_id,
            "success": self.success,
            "message": self.message,
            "data": dict(self.data),
        }


def _action_id(action_type: str) -> str:
    suffix = "".join(secrets.choice(_ACTION_SUFFIX_ALPHABET) for _ in range(4))
    return f"action:{action_type}:{int(time.time() * 1000)}:{suffix}"


def _action(
    action_type: str,
    description: str,
    confidence: float,
    priority: float,
    can_auto_execute: bool,
    **parameters: Any,
) -> RecommendedAction:
    return RecommendedAction(
        id=_action_id(action_type),
        type=action_type,
        description=description,
        confidence=confidence,
        priority=min(1.0, max(0.0, priority)),
        can_auto_execute=can_auto_execute,
        parameters=parameters,
    )


class ActionRecommender:
    """
    Maps problems to ranked actions and runs approved ones.

    Category rules live in ``_rules``; add an entry or override a
    ``_recommend_*`` method to change them.
    """

    def __init__(self):
        self._rules: dict[str, Callable[[ExtractedProblem, UrgencyScore], list]] = {
            "delivery": self._recommend_delivery,
            "payment": self._recommend_payment,
            "refund": self._recommend_refund,
            "technical": self._recommend_technical,
            "account": self._recommend_account,
        }
        self._handlers: dict[
            str, Callable[[RecommendedAction, ExtractedProblem], Awaitable[ActionExecutionResult]]
        ] = {
            "check_status": self._execute_check_status,
            "provide_info": self._execute_provide_info,
            "update_account": self._execute_update_account,
            "apologize": self._execute_apologize,
        }

    def recommend_actions(
        self, problem: ExtractedProblem, urgency: UrgencyScore
    ) -> list[RecommendedAction]:
        rule = self._rules.get(problem.category, self._recommend_default)
        actions = rule(problem, urgency)
        if not problem.can_agent_solve:
            actions.append(
                _action("escalate", "Escalate to human supervisor", 1.0, 1.0, False)
            )
        actions.sort(key=lambda a: a.rank, reverse=True)
        return actions

    def _recommend_delivery(self, problem, urgency) -> list[RecommendedAction]:
        actions = []
        order_id = next((e for e in problem.entities if ORDER_ID.match(e)), None)
        if order_id:
            actions.append(
                _action(
                    "check_status",
                    f"Check delivery status for order {order_id}",
                    0.9,
                    urgency.score,
                    True,
                    order_id=order_id,
                )
            )
        if urgency.level in ("high", "critical"):
            actions.append(
                _action(
                    "offer_compensation",
                    "Offer compensation for the delivery delay",
                    0.7,
                    urgency.score * 0.8,
                    False,
                )
            )
        return actions

    def _recommend_payment(self, problem, urgency) -> list[RecommendedAction]:
        actions = [_action("check_status", "Check payment status", 0.8, urgency.score, True)]
        if "refund" in problem.description.lower():
            actions.append(
                _action("process_refund", "Process refund request", 0.6, urgency.score * 0.9, False)
            )
        return actions

    def _recommend_refund(self, problem, urgency) -> list[RecommendedAction]:
        return [
            _action("process_refund", "Process refund request", 0.7, urgency.score, False),
            _action(
                "apologize", "Apologize for the inconvenience", 0.9, urgency.score * 0.5, True
            ),
        ]

    def _recommend_technical(self, problem, urgency) -> list[RecommendedAction]:
        actions = [
            _action("provide_info", "Provide troubleshooting steps", 0.8, urgency.score, True)
        ]
        if urgency.level in ("high", "critical"):
            actions.append(
                _action("escalate", "Escalate to technical support team", 0.9, urgency.score, False)
            )
        return actions

    def _recommend_account(self, problem, urgency) -> list[RecommendedAction]:
        if "password" in problem.description.lower():
            return [
                _action(
                    "update_account",
                    "Send password reset link",
                    0.95,
                    urgency.score,
                    True,
                    operation="password_reset",
                )
            ]
        return [
            _action(
                "update_account",
                "Update account information",
                0.7,
                urgency.score,
                False,
                operation="update_profile",
            )
        ]

    def _recommend_default(self, problem, urgency) -> list[RecommendedAction]:
        actions = [
            _action("provide_info", "Provide general information", 0.6, urgency.score * 0.7, True)
        ]
        if urgency.level in ("high", "critical"):
            actions.append(
                _action(
                    "apologize",
                    "Apologize for the inconvenience",
                    0.8,
                    urgency.score * 0.6,
                    True,
                )
            )
        return actions

    async def execute_action(
        self,
        action: RecommendedAction,
        problem: ExtractedProblem,
        approved: bool = False,
    ) -> ActionExecutionResult:
        """
        Run ``action``.

        Actions that are not auto-executable need ``approved=True``. Handler
        errors are reported as unsuccessful results.
        """
        if not action.can_auto_execute and not approved:
            return ActionExecutionResult(
                action_id=action.id, success=False, message="Action requires manual approval"
            )

        handler = self._handlers.get(action.type)
        if handler is None:
            return ActionExecutionResult(
                action_id=action.id,
                success=False,
                message=f"No automated handler for action type '{action.type}'",
            )

        try:
            result = await handler(action, problem)
        except (KeyError, TypeError, ValueError, AttributeError, RuntimeError) as e:
            logger.error(f"Action {action.id} failed: {e}", exc_info=True)
            return ActionExecutionResult(
                action_id=action.id, success=False, message=f"Action failed: {e}"
            )
        logger.info(f"Executed action {action.id} ({action.type})")
        return result

    async def _execute_check_status(self, action, problem) -> ActionExecutionResult:
        order_id = action.parameters.get("order_id")
        if not order_id:
            return ActionExecutionResult(
                action_id=action.id, success=False, message="No order id to check"
            )
        return ActionExecutionResult(
            action_id=action.id,
            success=True,
            message=f"Order {order_id} is in transit",
            data={"order_id": order_id, "status": "in_transit"},
        )

    async def _execute_provide_info(self, action, problem) -> ActionExecutionResult:
        return ActionExecutionResult(
            action_id=action.id,
            success=True,
            message=f"Information provided for {problem.category} issue",
            data={"info_type": problem.category},
        )

    async def _execute_update_account(self, action, problem) -> ActionExecutionResult:
        operation = action.parameters.get("operation", "update_profile")
        message = (
            "Password reset link sent"
            if operation == "password_reset"
            else "Account update recorded"
        )
        return ActionExecutionResult(
            action_id=action.id, success=True, message=message, data={"operation": operation}
        )

    async def _execute_apologize(self, action, problem) -> ActionExecutionResult:
        return ActionExecutionResult(
            action_id=action.id,
            success=True,
            message="Apology sent",
            data={
                "message": "We sincerely apologize for the inconvenience. "
                "We are working to resolve your issue as quickly as possible."
            },
        )
