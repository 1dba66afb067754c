"""Tests for action creation and SLA escalation."""

from datetime import timedelta

import pytest

from surveypulse.domains.action.escalation import ESCALATED_TAG, ActionEscalator
from surveypulse.domains.action.models import Action
from surveypulse.domains.action.writer import ActionDraft
from surveypulse.domains.assignment.models import AssignmentRule, AssignmentTarget
from surveypulse.pipeline.processor import build_action_writer
from tests.conftest import MEMBER_A, MEMBER_B, TENANT_ID
from tests.fakes import RecordingSink


@pytest.fixture
def writer(repos, sla_policy, sink, clock):
    return build_action_writer(repos, sla_policy, sink, clock)


@pytest.fixture
def escalator(repos, sla_policy, sink, clock):
    return ActionEscalator(repos.actions, sla_policy, sink, TENANT_ID, clock)


def draft(**fields) -> ActionDraft:
    values = {"title": "Follow up", "priority": "medium", "category": "General"}
    values.update(fields)
    return ActionDraft(**values)


class TestActionWriter:
    @pytest.mark.parametrize(
        "priority, hours", [("high", 4), ("medium", 24), ("low", 72), ("long-term", 720)]
    )
    async def test_due_date_follows_priority(self, writer, clock, priority, hours):
        action, created = await writer.create(draft(priority=priority))

        assert created is True
        assert action.due_date == clock.now() + timedelta(hours=hours)
        assert action.sla.target_resolution_time == action.due_date
        assert action.sla.is_breached is False
        assert action.status == "pending"

    async def test_rules_assign_when_no_assignee_given(self, repos, writer, sink):
        await repos.assignment_rules.create(
            AssignmentRule(
                tenant_id=TENANT_ID,
                name="everyone",
                assignment=AssignmentTarget(mode="single_owner", target_user=MEMBER_A),
            )
        )

        action, _ = await writer.create(draft())

        assert action.assigned_to == MEMBER_A
        assert action.auto_assigned is True
        entry = action.assignment_history[0]
        assert entry.auto is True
        assert entry.from_user is None
        assert entry.to_user == MEMBER_A
        assert "everyone" in entry.note
        assert sink.of_type("action_assigned")[0].user_id == MEMBER_A

    async def test_explicit_assignee_skips_rules(self, repos, writer):
        await repos.assignment_rules.create(
            AssignmentRule(
                tenant_id=TENANT_ID,
                name="everyone",
                assignment=AssignmentTarget(mode="single_owner", target_user=MEMBER_A),
            )
        )

        action, _ = await writer.create(draft(assigned_to=MEMBER_B))

        assert action.assigned_to == MEMBER_B
        assert action.auto_assigned is False
        assert action.assignment_history[0].auto is False

    async def test_rule_priority_override_drives_sla(self, repos, writer, clock):
        await repos.assignment_rules.create(
            AssignmentRule(
                tenant_id=TENANT_ID,
                name="vip",
                assignment=AssignmentTarget(mode="single_owner", target_user=MEMBER_A),
                priority_override="high",
            )
        )

        action, _ = await writer.create(draft(priority="low"))

        assert action.priority == "high"
        assert action.due_date == clock.now() + timedelta(hours=4)

    async def test_second_action_for_same_response_returns_existing(self, db, writer, sink):
        first, created = await writer.create(
            draft(source="ai_generated", response_id="r-1", priority="high")
        )
        again, created_again = await writer.create(
            draft(source="ai_generated", response_id="r-1", priority="high")
        )

        assert created is True
        assert created_again is False
        assert again.id == first.id
        assert len(db.actions) == 1
        assert len(sink.of_type("action_assigned")) == 1

    async def test_unassigned_low_priority_action_is_silent(self, writer, sink):
        await writer.create(draft(priority="low"))
        assert sink.events == []

    @pytest.mark.parametrize("priority", ["medium", "low", "long-term"])
    async def test_assignee_is_notified_at_any_priority(self, writer, sink, priority):
        action, _ = await writer.create(draft(priority=priority, assigned_to=MEMBER_B))

        [event] = sink.of_type("action_assigned")
        assert event.user_id == MEMBER_B
        assert event.action_id == action.id
        assert event.payload["priority"] == priority

    async def test_notification_failure_does_not_fail_creation(self, repos, sla_policy, clock):
        writer = build_action_writer(repos, sla_policy, RecordingSink(fail=True), clock)
        action, created = await writer.create(draft(priority="high"))
        assert created is True
        assert action.id is not None

    async def test_duplicate_tags_are_collapsed(self, writer):
        action, _ = await writer.create(draft(tags=["auto", "billing", "auto"]))
        assert action.tags == ["auto", "billing"]


class TestEscalation:
    async def test_breached_action_climbs_the_ladder(self, writer, escalator, repos, clock, sink):
        action, _ = await writer.create(draft(priority="low", assigned_to=MEMBER_A))

        clock.advance(hours=73)
        changed = await escalator.run()
        assert [a.id for a in changed] == [action.id]
        medium = await repos.actions.get_by_id(action.id)
        assert medium.priority == "medium"
        assert medium.sla.is_breached is True
        assert medium.due_date == clock.now() + timedelta(hours=24)
        assert ESCALATED_TAG in medium.tags
        assert medium.assignment_history[-1].kind == "escalation"
        assert "low -> medium" in medium.assignment_history[-1].note
        assert medium.auto_assigned is False
        assert medium.assignment_history[-1].auto is False
        assert sink.of_type("action_escalated") == []

        clock.advance(hours=25)
        await escalator.run()
        high = await repos.actions.get_by_id(action.id)
        assert high.priority == "high"
        assert high.due_date == clock.now() + timedelta(hours=4)
        assert high.tags.count(ESCALATED_TAG) == 1
        escalated = sink.of_type("action_escalated")
        assert len(escalated) == 1
        assert escalated[0].payload["previous_priority"] == "medium"

        # High is the ceiling: the breach is recorded and nothing else changes
        clock.advance(hours=5)
        await escalator.run()
        ceiling = await repos.actions.get_by_id(action.id)
        assert ceiling.priority == "high"
        assert ceiling.sla.is_breached is True
        assert len(ceiling.assignment_history) == len(high.assignment_history)

        assert await escalator.run() == []

    async def test_escalating_a_rule_assigned_action_stays_automatic(
        self, writer, escalator, repos, clock
    ):
        await repos.assignment_rules.create(
            AssignmentRule(
                tenant_id=TENANT_ID,
                name="everyone",
                assignment=AssignmentTarget(mode="single_owner", target_user=MEMBER_A),
            )
        )
        action, _ = await writer.create(draft(priority="low"))

        clock.advance(hours=73)
        await escalator.run()

        escalated = await repos.actions.get_by_id(action.id)
        assert escalated.auto_assigned is True
        assert escalated.assignment_history[-1].kind == "escalation"
        assert escalated.assignment_history[-1].auto is True

    async def test_high_priority_breach_is_marked_once(self, writer, escalator, repos, clock):
        await writer.create(draft(priority="high"))

        clock.advance(hours=5)
        changed = await escalator.run()

        assert len(changed) == 1
        assert changed[0].priority == "high"
        assert changed[0].sla.is_breached is True
        assert ESCALATED_TAG not in changed[0].tags
        assert await escalator.run() == []

    async def test_actions_within_sla_are_untouched(self, writer, escalator, clock):
        await writer.create(draft(priority="medium"))
        clock.advance(hours=23)
        assert await escalator.run() == []

    async def test_resolved_actions_are_not_escalated(self, db, writer, escalator, clock):
        action, _ = await writer.create(draft(priority="low"))
        stored: Action = db.actions[action.id]
        stored.status = "resolved"

        clock.advance(days=10)
        assert await escalator.run() == []
        assert db.actions[action.id].priority == "low"

    async def test_concurrent_change_is_skipped(self, db, repos, sla_policy, clock):
        writer = build_action_writer(repos, sla_policy, None, clock)
        action, _ = await writer.create(draft(priority="low"))
        clock.advance(hours=80)

        class RacingRepository(type(repos.actions)):
            async def find_breached(self, now, limit=100):
                found = await super().find_breached(now, limit)
                # Someone bumps the priority between the read and the write
                db.actions[action.id].priority = "medium"
                return found

        racing = RacingRepository(db.actions, TENANT_ID)
        escalator = ActionEscalator(racing, sla_policy, None, TENANT_ID, clock)

        assert await escalator.run() == []
        assert db.actions[action.id].tags == []
