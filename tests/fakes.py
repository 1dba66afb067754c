"""In-memory stand-ins for the stores, the broker and the LLM.

Each fake implements the same interface as its MongoDB or Redis
counterpart and keeps the guarantees the pipeline relies on: tenant
scoping, unique keys and guarded updates.
"""

import fnmatch
import re
import time
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any

from bson import ObjectId

from surveypulse.core.clock import Clock
from surveypulse.core.exceptions import DuplicateError, ValidationError
from surveypulse.db.redis import RedisCache
from surveypulse.domains.action.models import Action, ActionStatus, ActionPriority
from surveypulse.domains.action.repository import ActionRepositoryInterface
from surveypulse.domains.assignment.models import AssignmentRule
from surveypulse.domains.assignment.repository import AssignmentRuleRepositoryInterface
from surveypulse.domains.contact.models import Contact, SurveyStats
from surveypulse.domains.contact.repository import ContactRepositoryInterface
from surveypulse.domains.invite.models import InviteStatus, SurveyInvite
from surveypulse.domains.invite.repository import (
    InviteRepositoryInterface,
    InviteTokenLookupInterface,
)
from surveypulse.domains.member.repository import MemberDirectoryInterface
from surveypulse.domains.recognition.models import Recognition
from surveypulse.domains.recognition.repository import RecognitionRepositoryInterface
from surveypulse.domains.repositories import TenantRepositories
from surveypulse.domains.response.models import Response, ResponseAnalysis
from surveypulse.domains.response.repository import (
    RespondentMetrics,
    ResponseRepositoryInterface,
    respondent_metrics,
)
from surveypulse.domains.rules.models import RuleOverride
from surveypulse.domains.rules.repository import RuleOverrideRepositoryInterface
from surveypulse.domains.segment.models import AudienceSegment
from surveypulse.domains.segment.repository import SegmentRepositoryInterface
from surveypulse.domains.survey.models import Survey
from surveypulse.domains.survey.repository import (
    PublicSurveyLookupInterface,
    SurveyRepositoryInterface,
)
from surveypulse.integrations.llm.base import (
    LLMProvider,
    LLMProviderError,
    LLMProviderType,
    LLMResponse,
)
from surveypulse.integrations.notifications import NotificationEvent, NotificationSink
from surveypulse.jobs.base import DeadLetterEntry, DeadLetterSink, Job, JobQueue


def new_id() -> str:
    return str(ObjectId())


# ============================================================
# Time
# ============================================================

class FixedClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, now: datetime | None = None):
        self._now = now or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now


# ============================================================
# Query matching for segment queries
# ============================================================

_MISSING = object()


def _get_path(doc: dict, path: str) -> Any:
    value: Any = doc
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _compare(value: Any, op: str, operand: Any) -> bool:
    if value is _MISSING or value is None:
        return False
    if op == "$gt":
        return value > operand
    if op == "$gte":
        return value >= operand
    if op == "$lt":
        return value < operand
    return value <= operand


def _condition_holds(value: Any, condition: Any) -> bool:
    if not (isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition)):
        if isinstance(value, list):
            return condition in value
        return value is not _MISSING and value == condition

    for op, operand in condition.items():
        if op == "$in":
            if isinstance(value, list):
                ok = any(item in operand for item in value)
            else:
                ok = (None if value is _MISSING else value) in operand
        elif op == "$all":
            ok = isinstance(value, list) and all(item in value for item in operand)
        elif op == "$ne":
            ok = value is _MISSING or value != operand
        elif op == "$exists":
            ok = (value is not _MISSING) == bool(operand)
        elif op == "$regex":
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            ok = isinstance(value, str) and re.search(operand, value, flags) is not None
        elif op == "$options":
            ok = True
        elif op in ("$gt", "$gte", "$lt", "$lte"):
            ok = _compare(value, op, operand)
        else:
            raise AssertionError(f"Unsupported operator {op}")
        if not ok:
            return False
    return True


def matches(doc: dict, query: dict) -> bool:
    """Evaluate the subset of the MongoDB query language segments compile to."""
    for key, condition in query.items():
        if key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif not _condition_holds(_get_path(doc, key), condition):
            return False
    return True


def _set_path(doc: dict, path: str, value: Any) -> None:
    parts = path.split(".")
    target = doc
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def _apply_fields(model, fields: dict[str, Any]):
    doc = model.model_dump(by_alias=True)
    for path, value in fields.items():
        _set_path(doc, path, value)
    return type(model)(**doc)


# ============================================================
# Repositories
# ============================================================

class InMemorySurveyRepository(SurveyRepositoryInterface):
    def __init__(self, store: dict[str, Survey], tenant_id: str):
        self._store = store
        self._tenant_id = tenant_id

    async def get_by_id(self, survey_id: str) -> Survey | None:
        survey = self._store.get(survey_id)
        if survey is None or survey.tenant_id != self._tenant_id:
            return None
        return survey.model_copy(deep=True)


class InMemoryPublicSurveyLookup(PublicSurveyLookupInterface):
    def __init__(self, store: dict[str, Survey]):
        self._store = store

    async def get_by_id(self, survey_id: str) -> Survey | None:
        survey = self._store.get(survey_id)
        return survey.model_copy(deep=True) if survey else None


class InMemoryInviteRepository(InviteRepositoryInterface):
    def __init__(self, store: dict[str, SurveyInvite], tenant_id: str):
        self._store = store
        self._tenant_id = tenant_id

    def _get(self, invite_id: str) -> SurveyInvite | None:
        invite = self._store.get(invite_id)
        if invite is None or invite.tenant_id != self._tenant_id:
            return None
        return invite

    async def create(self, invite: SurveyInvite) -> SurveyInvite:
        invite.id = invite.id or new_id()
        self._store[invite.id] = invite.model_copy(deep=True)
        return invite

    async def get_by_id(self, invite_id: str) -> SurveyInvite | None:
        invite = self._get(invite_id)
        return invite.model_copy(deep=True) if invite else None

    async def mark_opened(self, invite_id: str, opened_at: datetime) -> bool:
        invite = self._get(invite_id)
        if not invite or invite.status != InviteStatus.SENT.value:
            return False
        invite.status = InviteStatus.OPENED.value
        invite.opened_at = opened_at
        return True

    async def mark_responded(self, invite_id: str, responded_at: datetime) -> bool:
        invite = self._get(invite_id)
        if not invite or invite.status == InviteStatus.RESPONDED.value:
            return False
        invite.status = InviteStatus.RESPONDED.value
        invite.responded_at = responded_at
        return True

    async def increment_attempts(self, invite_id: str) -> None:
        invite = self._get(invite_id)
        if invite:
            invite.attempt_count += 1

    async def summarize_for_email(self, email: str) -> tuple[int, datetime | None]:
        dates = [
            invite.created_at
            for invite in self._store.values()
            if invite.tenant_id == self._tenant_id
            and invite.recipient_email
            and invite.recipient_email.lower() == email.strip().lower()
        ]
        return len(dates), max(dates) if dates else None


class InMemoryInviteTokenLookup(InviteTokenLookupInterface):
    def __init__(self, store: dict[str, SurveyInvite]):
        self._store = store

    async def get_by_token(self, token: str) -> SurveyInvite | None:
        for invite in self._store.values():
            if invite.token == token:
                return invite.model_copy(deep=True)
        return None


class InMemoryResponseRepository(ResponseRepositoryInterface):
    def __init__(self, store: dict[str, Response], tenant_id: str):
        self._store = store
        self._tenant_id = tenant_id
        self.fail_save_analysis = 0

    def _get(self, response_id: str) -> Response | None:
        response = self._store.get(response_id)
        if response is None or response.tenant_id != self._tenant_id:
            return None
        return response

    async def create(self, response: Response) -> Response:
        if response.invite_id and any(
            stored.invite_id == response.invite_id for stored in self._store.values()
        ):
            raise DuplicateError("invite_id", response.invite_id)
        response.id = response.id or new_id()
        self._store[response.id] = response.model_copy(deep=True)
        return response

    async def get_by_id(self, response_id: str) -> Response | None:
        response = self._get(response_id)
        return response.model_copy(deep=True) if response else None

    async def get_by_invite_id(self, invite_id: str) -> Response | None:
        for response in self._store.values():
            if response.tenant_id == self._tenant_id and response.invite_id == invite_id:
                return response.model_copy(deep=True)
        return None

    async def get_many(self, response_ids: list[str]) -> list[Response]:
        return [
            response.model_copy(deep=True)
            for response in map(self._get, response_ids)
            if response is not None
        ]

    async def save_analysis(self, response_id: str, analysis: ResponseAnalysis) -> bool:
        if self.fail_save_analysis:
            self.fail_save_analysis -= 1
            raise ConnectionError("responses collection unavailable")
        response = self._get(response_id)
        if not response or (response.analysis and response.analysis.analyzed_at):
            return False
        response.analysis = analysis.model_copy(deep=True)
        return True

    async def claim_stats_sync(self, response_id: str, claimed_at: datetime) -> bool:
        response = self._get(response_id)
        if not response or response.stats_synced_at is not None:
            return False
        response.stats_synced_at = claimed_at
        return True

    async def release_stats_sync(self, response_id: str) -> None:
        response = self._get(response_id)
        if response:
            response.stats_synced_at = None

    async def list_metrics_for_email(
        self, email: str, include_anonymous: bool = True
    ) -> list[RespondentMetrics]:
        records = [
            response
            for response in self._store.values()
            if response.tenant_id == self._tenant_id
            and response.email
            and response.email.lower() == email.strip().lower()
            and (include_anonymous or not response.is_anonymous)
        ]
        records.sort(key=lambda response: response.submitted_at)
        return [respondent_metrics(response.model_dump()) for response in records]


class InMemoryContactRepository(ContactRepositoryInterface):
    def __init__(self, store: dict[str, Contact], tenant_id: str):
        self._store = store
        self._tenant_id = tenant_id
        # Number of guarded updates to reject, simulating concurrent writers
        self.conflicts_to_inject = 0

    def _tenant_contacts(self) -> list[Contact]:
        return [c for c in self._store.values() if c.tenant_id == self._tenant_id]

    def _find_email(self, email: str) -> Contact | None:
        wanted = email.strip().lower()
        for contact in self._tenant_contacts():
            if contact.email.lower() == wanted:
                return contact
        return None

    async def get_by_email(self, email: str) -> Contact | None:
        contact = self._find_email(email)
        return contact.model_copy(deep=True) if contact else None

    async def record_invite(self, email: str, invited_at: datetime) -> bool:
        contact = self._find_email(email)
        if not contact:
            return False
        contact.survey_stats.invited_count += 1
        contact.survey_stats.last_invited_date = invited_at
        return True

    async def apply_response_stats(
        self,
        contact_id: str,
        expected_responded_count: int,
        fields: dict[str, Any],
    ) -> bool:
        contact = self._store.get(contact_id)
        if not contact or contact.tenant_id != self._tenant_id:
            return False
        if self.conflicts_to_inject:
            self.conflicts_to_inject -= 1
            return False
        if contact.survey_stats.responded_count != expected_responded_count:
            return False
        self._store[contact_id] = _apply_fields(contact, fields)
        return True

    async def replace_survey_stats(self, contact_id: str, stats: SurveyStats) -> bool:
        contact = self._store.get(contact_id)
        if not contact or contact.tenant_id != self._tenant_id:
            return False
        contact.survey_stats = stats.model_copy(deep=True)
        return True

    async def list_emails(self) -> list[str]:
        return [contact.email for contact in self._tenant_contacts()]

    def _matching(self, query: dict) -> list[Contact]:
        found = [
            contact
            for contact in self._tenant_contacts()
            if matches(contact.model_dump(), query)
        ]
        return sorted(found, key=lambda contact: contact.id, reverse=True)

    async def find(self, query: dict, skip: int = 0, limit: int = 50) -> list[Contact]:
        return [c.model_copy(deep=True) for c in self._matching(query)[skip : skip + limit]]

    async def count(self, query: dict) -> int:
        return len(self._matching(query))


class InMemoryActionRepository(ActionRepositoryInterface):
    def __init__(self, store: dict[str, Action], tenant_id: str):
        self._store = store
        self._tenant_id = tenant_id

    def _live(self) -> list[Action]:
        return [
            action
            for action in self._store.values()
            if action.tenant_id == self._tenant_id and not action.is_deleted
        ]

    def _get(self, action_id: str) -> Action | None:
        action = self._store.get(action_id)
        if action is None or action.tenant_id != self._tenant_id or action.is_deleted:
            return None
        return action

    async def create(self, action: Action) -> Action:
        if action.response_id and action.source == "ai_generated":
            for stored in self._store.values():
                if (
                    stored.tenant_id == self._tenant_id
                    and stored.response_id == action.response_id
                    and stored.source == "ai_generated"
                ):
                    raise DuplicateError("response_id", action.response_id)
        action.id = action.id or new_id()
        self._store[action.id] = action.model_copy(deep=True)
        return action

    async def get_by_id(self, action_id: str) -> Action | None:
        action = self._get(action_id)
        return action.model_copy(deep=True) if action else None

    async def get_by_response_id(self, response_id: str) -> Action | None:
        for action in self._live():
            if action.response_id == response_id:
                return action.model_copy(deep=True)
        return None

    async def list_actions(
        self,
        filters: dict[str, Any],
        limit: int = 20,
        cursor: str | None = None,
    ) -> tuple[list[Action], str | None, bool]:
        if cursor and not ObjectId.is_valid(cursor):
            raise ValidationError("Invalid cursor", details={"cursor": cursor})
        actions = [
            action
            for action in self._live()
            if all(
                getattr(action, key) == value
                for key, value in filters.items()
                if value is not None
            )
            and (not cursor or ObjectId(action.id) < ObjectId(cursor))
        ]
        actions.sort(key=lambda action: ObjectId(action.id), reverse=True)
        has_more = len(actions) > limit
        page = [action.model_copy(deep=True) for action in actions[:limit]]
        next_cursor = page[-1].id if has_more and page else None
        return page, next_cursor, has_more

    async def update(
        self,
        action_id: str,
        fields: dict[str, Any],
        history_entry=None,
        add_tags: list[str] | None = None,
        expected_priority: str | None = None,
    ) -> Action | None:
        action = self._get(action_id)
        if action is None or action.status == ActionStatus.RESOLVED.value:
            return None
        if expected_priority is not None and action.priority != expected_priority:
            return None

        updated = _apply_fields(action, fields)
        if history_entry is not None:
            updated.assignment_history.append(history_entry.model_copy(deep=True))
        for tag in add_tags or []:
            if tag not in updated.tags:
                updated.tags.append(tag)
        self._store[action_id] = updated
        return updated.model_copy(deep=True)

    async def soft_delete(self, action_id: str, deleted_at: datetime) -> bool:
        action = self._get(action_id)
        if action is None:
            return False
        action.is_deleted = True
        action.updated_at = deleted_at
        return True

    async def count_open_for_assignee(self, user_id: str) -> int:
        return sum(
            1
            for action in self._live()
            if action.assigned_to == user_id and action.status != ActionStatus.RESOLVED.value
        )

    async def find_breached(self, now: datetime, limit: int = 100) -> list[Action]:
        breached = [
            action
            for action in self._live()
            if action.status != ActionStatus.RESOLVED.value
            and action.sla.target_resolution_time < now
            and not (action.priority == ActionPriority.HIGH.value and action.sla.is_breached)
        ]
        breached.sort(key=lambda action: action.sla.target_resolution_time)
        return [action.model_copy(deep=True) for action in breached[:limit]]

    async def count_recent_by_category(
        self, since: datetime, sources: list[str]
    ) -> dict[str, int]:
        counts: dict[str, int] = defaultdict(int)
        for action in self._live():
            if action.source in sources and action.created_at >= since and action.category:
                counts[action.category] += 1
        return dict(counts)


class InMemoryAssignmentRuleRepository(AssignmentRuleRepositoryInterface):
    def __init__(self, store: dict[str, AssignmentRule], tenant_id: str):
        self._store = store
        self._tenant_id = tenant_id

    def _get(self, rule_id: str) -> AssignmentRule | None:
        rule = self._store.get(rule_id)
        if rule is None or rule.tenant_id != self._tenant_id:
            return None
        return rule

    async def create(self, rule: AssignmentRule) -> AssignmentRule:
        rule.id = rule.id or new_id()
        self._store[rule.id] = rule.model_copy(deep=True)
        return rule

    async def get_by_id(self, rule_id: str) -> AssignmentRule | None:
        rule = self._get(rule_id)
        return rule.model_copy(deep=True) if rule else None

    async def list_rules(self, active_only: bool = False) -> list[AssignmentRule]:
        rules = [
            rule
            for rule in self._store.values()
            if rule.tenant_id == self._tenant_id and (rule.is_active or not active_only)
        ]
        rules.sort(key=lambda rule: (-rule.priority, rule.id))
        return [rule.model_copy(deep=True) for rule in rules]

    async def set_active(self, rule_id: str, is_active: bool) -> bool:
        rule = self._get(rule_id)
        if rule is None:
            return False
        rule.is_active = is_active
        return True

    async def next_round_robin_index(self, rule_id: str) -> int | None:
        rule = self._get(rule_id)
        if rule is None:
            return None
        rule.last_assigned_index += 1
        return rule.last_assigned_index


class InMemoryRecognitionRepository(RecognitionRepositoryInterface):
    def __init__(self, store: dict[str, Recognition], tenant_id: str):
        self._store = store
        self._tenant_id = tenant_id

    def _key(self, response_id: str) -> str:
        return f"{self._tenant_id}:{response_id}"

    async def record(self, recognition: Recognition) -> Recognition:
        existing = self._store.get(self._key(recognition.response_id))
        stored = recognition.model_copy(
            update={
                "id": existing.id if existing else new_id(),
                "tenant_id": self._tenant_id,
                "created_at": existing.created_at if existing else recognition.created_at,
            },
            deep=True,
        )
        self._store[self._key(recognition.response_id)] = stored
        return stored.model_copy(deep=True)

    async def get_by_response_id(self, response_id: str) -> Recognition | None:
        recognition = self._store.get(self._key(response_id))
        return recognition.model_copy(deep=True) if recognition else None


class InMemoryRuleOverrideRepository(RuleOverrideRepositoryInterface):
    def __init__(self, store: dict[str, dict[str, RuleOverride]], tenant_id: str):
        self._store = store
        self._tenant_id = tenant_id

    async def get_overrides(self) -> dict[str, RuleOverride]:
        return dict(self._store.get(self._tenant_id, {}))


class InMemorySegmentRepository(SegmentRepositoryInterface):
    def __init__(self, store: dict[str, AudienceSegment], tenant_id: str):
        self._store = store
        self._tenant_id = tenant_id

    def _tenant_segments(self) -> list[AudienceSegment]:
        return [s for s in self._store.values() if s.tenant_id == self._tenant_id]

    def _name_taken(self, name: str, exclude_id: str | None = None) -> bool:
        return any(
            segment.name == name and segment.id != exclude_id
            for segment in self._tenant_segments()
        )

    def _user_defined(self, segment_id: str) -> AudienceSegment | None:
        segment = self._store.get(segment_id)
        if segment is None or segment.tenant_id != self._tenant_id or segment.is_system:
            return None
        return segment

    async def create(self, segment: AudienceSegment) -> AudienceSegment:
        if self._name_taken(segment.name):
            raise DuplicateError("name", segment.name)
        segment.id = segment.id or new_id()
        self._store[segment.id] = segment.model_copy(deep=True)
        return segment

    async def get_by_id(self, segment_id: str) -> AudienceSegment | None:
        segment = self._store.get(segment_id)
        if segment is None or segment.tenant_id != self._tenant_id:
            return None
        return segment.model_copy(deep=True)

    async def list_segments(self) -> list[AudienceSegment]:
        segments = sorted(self._tenant_segments(), key=lambda s: (not s.is_system, s.name))
        return [segment.model_copy(deep=True) for segment in segments]

    async def list_system_keys(self) -> set[str]:
        return {s.system_key for s in self._tenant_segments() if s.is_system and s.system_key}

    async def update(self, segment_id: str, fields: dict[str, Any]) -> AudienceSegment | None:
        segment = self._user_defined(segment_id)
        if segment is None:
            return None
        if "name" in fields and self._name_taken(fields["name"], exclude_id=segment_id):
            raise DuplicateError("name", fields["name"])
        updated = segment.model_copy(update=fields, deep=True)
        self._store[segment_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, segment_id: str) -> bool:
        if self._user_defined(segment_id) is None:
            return False
        del self._store[segment_id]
        return True


class InMemoryMemberDirectory(MemberDirectoryInterface):
    def __init__(self, members: dict[str, set[str]], tenant_id: str):
        self._members = members
        self._tenant_id = tenant_id

    async def is_member(self, user_id: str) -> bool:
        return user_id in self._members.get(self._tenant_id, set())


class InMemoryDatabase:
    """Shared backing dicts; ``repositories(tenant_id)`` binds them to a tenant."""

    def __init__(self):
        self.surveys: dict[str, Survey] = {}
        self.invites: dict[str, SurveyInvite] = {}
        self.responses: dict[str, Response] = {}
        self.contacts: dict[str, Contact] = {}
        self.actions: dict[str, Action] = {}
        self.assignment_rules: dict[str, AssignmentRule] = {}
        self.recognitions: dict[str, Recognition] = {}
        self.rule_overrides: dict[str, dict[str, RuleOverride]] = {}
        self.segments: dict[str, AudienceSegment] = {}
        self.members: dict[str, set[str]] = defaultdict(set)
        self._bundles: dict[str, TenantRepositories] = {}

    def repositories(self, tenant_id: str) -> TenantRepositories:
        # One bundle per tenant so injected failures survive re-resolution
        if tenant_id not in self._bundles:
            self._bundles[tenant_id] = TenantRepositories(
                tenant_id=tenant_id,
                surveys=InMemorySurveyRepository(self.surveys, tenant_id),
                invites=InMemoryInviteRepository(self.invites, tenant_id),
                responses=InMemoryResponseRepository(self.responses, tenant_id),
                contacts=InMemoryContactRepository(self.contacts, tenant_id),
                actions=InMemoryActionRepository(self.actions, tenant_id),
                assignment_rules=InMemoryAssignmentRuleRepository(
                    self.assignment_rules, tenant_id
                ),
                recognitions=InMemoryRecognitionRepository(self.recognitions, tenant_id),
                rule_overrides=InMemoryRuleOverrideRepository(self.rule_overrides, tenant_id),
                segments=InMemorySegmentRepository(self.segments, tenant_id),
                members=InMemoryMemberDirectory(self.members, tenant_id),
            )
        return self._bundles[tenant_id]

    def invite_lookup(self) -> InviteTokenLookupInterface:
        return InMemoryInviteTokenLookup(self.invites)

    def survey_lookup(self) -> PublicSurveyLookupInterface:
        return InMemoryPublicSurveyLookup(self.surveys)

    # Seeding helpers

    def add_survey(self, survey: Survey) -> Survey:
        survey.id = survey.id or new_id()
        self.surveys[survey.id] = survey
        return survey

    def add_invite(self, invite: SurveyInvite) -> SurveyInvite:
        invite.id = invite.id or new_id()
        self.invites[invite.id] = invite
        return invite

    def add_contact(self, contact: Contact) -> Contact:
        contact.id = contact.id or new_id()
        self.contacts[contact.id] = contact
        return contact

    def add_response(self, response: Response) -> Response:
        response.id = response.id or new_id()
        self.responses[response.id] = response
        return response

    def add_action(self, action: Action) -> Action:
        action.id = action.id or new_id()
        self.actions[action.id] = action
        return action


# ============================================================
# Notifications, LLM, queues, cache
# ============================================================

class RecordingSink(NotificationSink):
    """Keeps every published event."""

    def __init__(self, fail: bool = False):
        self.events: list[NotificationEvent] = []
        self.fail = fail

    async def publish(self, event: NotificationEvent) -> None:
        if self.fail:
            raise ConnectionError("socket server unavailable")
        self.events.append(event)

    def of_type(self, event_type: str) -> list[NotificationEvent]:
        return [event for event in self.events if event.type == event_type]


class ScriptedLLM(LLMProvider):
    """Replies with queued texts; an exception in the script is raised instead."""

    provider_type = LLMProviderType.OPENAI

    def __init__(self, *replies: str | Exception):
        self.replies = list(replies)
        self.prompts: list[str] = []

    async def complete(
        self,
        prompt: str,
        max_tokens: int | None = None,
        system_prompt: str | None = None,
    ) -> LLMResponse:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(text=reply, provider=self.provider_type, model="scripted")

    async def health_check(self) -> bool:
        return True


class FailingLLM(ScriptedLLM):
    def __init__(self, message: str = "quota exceeded"):
        super().__init__(LLMProviderError(message))


class MemoryDeadLetters(DeadLetterSink):
    def __init__(self):
        self.entries: list[DeadLetterEntry] = []

    async def record(self, entry: DeadLetterEntry) -> None:
        self.entries.append(entry)


class RecordingQueue(JobQueue):
    """Collects jobs without running them."""

    name = "recording"

    def __init__(self, fail: bool = False):
        self.jobs: list[Job] = []
        self.fail = fail

    async def enqueue(self, payload: dict[str, Any], job_id: str | None = None) -> Job:
        if self.fail:
            raise ConnectionError("broker unavailable")
        job = Job(name=self.name, payload=payload)
        if job_id:
            job.id = job_id
        self.jobs.append(job)
        return job

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass


class MemoryCache(RedisCache):
    """RedisCache over a dict."""

    def __init__(self):
        super().__init__(prefix="segment_count")
        self.values: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.values.get(self._key(key))

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self.values[self._key(key)] = value

    async def delete(self, key: str) -> None:
        self.values.pop(self._key(key), None)


class FakePipeline:
    def __init__(self, client: "FakeRedis"):
        self._client = client
        self._calls: list[tuple[str, tuple, dict]] = []

    def __getattr__(self, name: str):
        def queue(*args, **kwargs):
            self._calls.append((name, args, kwargs))
            return self

        return queue

    async def execute(self) -> list[Any]:
        results = []
        for name, args, kwargs in self._calls:
            results.append(await getattr(self._client, name)(*args, **kwargs))
        self._calls = []
        return results


class FakeRedis:
    """The list, sorted-set and string commands the queue and rate limiter use.

    Lists are stored left to right, so index 0 is the LPUSH end.
    """

    def __init__(self):
        self.strings: dict[str, str] = {}
        self.lists: dict[str, list[str]] = defaultdict(list)
        self.zsets: dict[str, dict[str, float]] = defaultdict(dict)
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self.strings.get(key)

    async def set(self, key: str, value: str, nx: bool = False, ex: int | None = None):
        if nx and key in self.strings:
            return None
        self.strings[key] = value
        return True

    async def setex(self, key: str, ttl: int, value: str):
        self.strings[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            removed += int(self.strings.pop(key, None) is not None)
        return removed

    async def incr(self, key: str) -> int:
        value = int(self.strings.get(key, "0")) + 1
        self.strings[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    async def lpush(self, key: str, *values: str) -> int:
        for value in values:
            self.lists[key].insert(0, value)
        return len(self.lists[key])

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        items = self.lists[key]
        return items[start:] if end == -1 else items[start : end + 1]

    async def lrem(self, key: str, count: int, value: str) -> int:
        items = self.lists[key]
        removed = 0
        while value in items and (count == 0 or removed < count):
            items.remove(value)
            removed += 1
        return removed

    async def lmove(self, source: str, destination: str, src: str = "LEFT", dest: str = "RIGHT"):
        items = self.lists[source]
        if not items:
            return None
        value = items.pop() if src == "RIGHT" else items.pop(0)
        if dest == "LEFT":
            self.lists[destination].insert(0, value)
        else:
            self.lists[destination].append(value)
        return value

    async def blmove(
        self, source: str, destination: str, timeout: float, src: str = "LEFT", dest: str = "RIGHT"
    ):
        return await self.lmove(source, destination, src, dest)

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        added = sum(1 for member in mapping if member not in self.zsets[key])
        self.zsets[key].update(mapping)
        return added

    async def zrangebyscore(self, key: str, low, high) -> list[str]:
        low = float("-inf") if low == "-inf" else float(low)
        high = float("inf") if high == "+inf" else float(high)
        members = sorted(self.zsets[key].items(), key=lambda item: item[1])
        return [member for member, score in members if low <= score <= high]

    async def zrem(self, key: str, *members: str) -> int:
        removed = 0
        for member in members:
            removed += int(self.zsets[key].pop(member, None) is not None)
        return removed

    async def keys(self, pattern: str) -> list[str]:
        return [key for key in self.strings if fnmatch.fnmatch(key, pattern)]

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)


def far_future() -> float:
    return time.time() + 10**6
