"""
Unit tests for action recommendation and execution.
"""

import pytest

from context_space.intelligence.actions import ActionRecommender
from context_space.intelligence.problems import ExtractedProblem
from context_space.intelligence.urgency import UrgencyScore

MEDIUM = UrgencyScore(score=0.425, level="medium")
HIGH = UrgencyScore(score=0.7, level="high")


def make_problem(category, description="", can_agent_solve=True, entities=()):
    return ExtractedProblem(
        id="problem:web:1:x",
        summary=description,
        description=description,
        category=category,
        criticality=0.5,
        can_agent_solve=can_agent_solve,
        entities=list(entities),
        urgency="medium",
        first_seen=1,
        last_seen=1,
    )


@pytest.fixture
def recommender():
    return ActionRecommender()


class TestRecommendActions:
    def test_delivery_with_order_and_escalation(self, recommender):
        problem = make_problem("delivery", can_agent_solve=False, entities=["AB123"])
        actions = recommender.recommend_actions(problem, MEDIUM)

        assert [a.type for a in actions] == ["escalate", "check_status"]
        assert actions[1].parameters == {"order_id": "AB123"}
        assert actions[1].can_auto_execute is True
        assert actions[0].can_auto_execute is False

    def test_ranked_by_priority_and_confidence(self, recommender):
        actions = recommender.recommend_actions(make_problem("refund"), MEDIUM)
        assert [a.type for a in actions] == ["process_refund", "apologize"]
        assert actions[0].rank >= actions[1].rank

    def test_password_reset(self, recommender):
        actions = recommender.recommend_actions(
            make_problem("account", "I forgot my password"), MEDIUM
        )
        assert len(actions) == 1
        assert actions[0].parameters == {"operation": "password_reset"}

    def test_default_high_urgency(self, recommender):
        actions = recommender.recommend_actions(make_problem("other"), HIGH)
        assert {a.type for a in actions} == {"provide_info", "apologize"}

    def test_delivery_high_urgency_offers_compensation(self, recommender):
        actions = recommender.recommend_actions(make_problem("delivery"), HIGH)
        assert [a.type for a in actions] == ["offer_compensation"]

    def test_to_dict(self, recommender):
        action = recommender.recommend_actions(make_problem("technical"), MEDIUM)[0]
        data = action.to_dict()
        assert data["type"] == "provide_info"
        assert data["id"].startswith("action:provide_info:")


class TestExecuteAction:
    @pytest.mark.asyncio
    async def test_requires_approval(self, recommender):
        problem = make_problem("refund")
        refund = recommender.recommend_actions(problem, MEDIUM)[0]
        result = await recommender.execute_action(refund, problem)
        assert result.success is False
        assert result.message == "Action requires manual approval"

    @pytest.mark.asyncio
    async def test_approved_without_handler(self, recommender):
        problem = make_problem("refund")
        refund = recommender.recommend_actions(problem, MEDIUM)[0]
        result = await recommender.execute_action(refund, problem, approved=True)
        assert result.success is False
        assert "process_refund" in result.message

    @pytest.mark.asyncio
    async def test_check_status(self, recommender):
        problem = make_problem("delivery", entities=["AB123"])
        action = recommender.recommend_actions(problem, MEDIUM)[0]
        result = await recommender.execute_action(action, problem)
        assert result.success is True
        assert result.data == {"order_id": "AB123", "status": "in_transit"}

    @pytest.mark.asyncio
    async def test_handler_error_reported(self, recommender):
        problem = make_problem("other")
        action = recommender.recommend_actions(problem, MEDIUM)[0]

        async def broken(action, problem):
            raise RuntimeError("backend down")

        recommender._handlers["provide_info"] = broken
        result = await recommender.execute_action(action, problem)
        assert result.success is False
        assert "backend down" in result.message
