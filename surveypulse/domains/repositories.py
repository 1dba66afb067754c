"""Tenant-scoped repository bundle.

Services and the pipeline take this bundle instead of a database handle, so
every store access is bound to one tenant and tests can swap in in-memory
implementations.
"""

from dataclasses import dataclass

from motor.motor_asyncio import AsyncIOMotorDatabase

from surveypulse.domains.action.repository import (
    ActionRepositoryInterface,
    MongoActionRepository,
)
from surveypulse.domains.assignment.repository import (
    AssignmentRuleRepositoryInterface,
    MongoAssignmentRuleRepository,
)
from surveypulse.domains.contact.repository import (
    ContactRepositoryInterface,
    MongoContactRepository,
)
from surveypulse.domains.invite.repository import (
    InviteRepositoryInterface,
    MongoInviteRepository,
)
from surveypulse.domains.member.repository import (
    MemberDirectoryInterface,
    MongoMemberDirectory,
)
from surveypulse.domains.recognition.repository import (
    MongoRecognitionRepository,
    RecognitionRepositoryInterface,
)
from surveypulse.domains.response.repository import (
    MongoResponseRepository,
    ResponseRepositoryInterface,
)
from surveypulse.domains.rules.repository import (
    MongoRuleOverrideRepository,
    RuleOverrideRepositoryInterface,
)
from surveypulse.domains.segment.repository import (
    MongoSegmentRepository,
    SegmentRepositoryInterface,
)
from surveypulse.domains.survey.repository import (
    MongoSurveyRepository,
    SurveyRepositoryInterface,
)


@dataclass
class TenantRepositories:
    """Every repository, bound to one tenant."""

    tenant_id: str
    surveys: SurveyRepositoryInterface
    invites: InviteRepositoryInterface
    responses: ResponseRepositoryInterface
    contacts: ContactRepositoryInterface
    actions: ActionRepositoryInterface
    assignment_rules: AssignmentRuleRepositoryInterface
    recognitions: RecognitionRepositoryInterface
    rule_overrides: RuleOverrideRepositoryInterface
    segments: SegmentRepositoryInterface
    members: MemberDirectoryInterface


def mongo_repositories(db: AsyncIOMotorDatabase, tenant_id: str) -> TenantRepositories:
    """Build the MongoDB-backed bundle for a tenant."""
    return TenantRepositories(
        tenant_id=tenant_id,
        surveys=MongoSurveyRepository(db, tenant_id),
        invites=MongoInviteRepository(db, tenant_id),
        responses=MongoResponseRepository(db, tenant_id),
        contacts=MongoContactRepository(db, tenant_id),
        actions=MongoActionRepository(db, tenant_id),
        assignment_rules=MongoAssignmentRuleRepository(db, tenant_id),
        recognitions=MongoRecognitionRepository(db, tenant_id),
        rule_overrides=MongoRuleOverrideRepository(db, tenant_id),
        segments=MongoSegmentRepository(db, tenant_id),
        members=MongoMemberDirectory(db, tenant_id),
    )
