"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from surveypulse.core.security import create_access_token, generate_invite_token
from surveypulse.dependencies.services import (
    get_clock,
    get_geo_locator,
    get_invite_lookup,
    get_job_queue,
    get_notification_sink,
    get_repositories_factory,
    get_rule_catalog,
    get_segment_cache,
    get_survey_lookup,
)
from surveypulse.domains.action.sla import SlaPolicy
from surveypulse.domains.analysis.analyzer import ContentAnalyzer
from surveypulse.domains.contact.models import Contact
from surveypulse.domains.invite.models import InviteContact, SurveyInvite
from surveypulse.domains.rules.catalog import DEFAULT_RULES
from surveypulse.domains.survey.models import Question, Survey, SurveyStatus
from surveypulse.main import create_app
from surveypulse.pipeline.processor import ProcessingOptions, ResponseProcessor
from tests.fakes import (
    FixedClock,
    InMemoryDatabase,
    MemoryCache,
    RecordingQueue,
    RecordingSink,
    ScriptedLLM,
)

TENANT_ID = "tenant-1"
OTHER_TENANT_ID = "tenant-2"
MANAGER_ID = "65f000000000000000000001"
MEMBER_A = "65f00000000000000000000a"
MEMBER_B = "65f00000000000000000000b"
MEMBER_C = "65f00000000000000000000c"

NEGATIVE_REPLY = """```json
{"sentiment": "negative", "sentimentScore": -0.8, "urgency": "high",
 "emotions": ["frustration"], "keywords": ["call"], "themes": ["support"],
 "classification": {"isComplaint": true, "isPraise": false, "isSuggestion": false},
 "summary": "Customer wants a callback", "shouldGenerateAction": true}
```"""

PRAISE_REPLY = """{"sentiment": "positive", "sentimentScore": 0.9, "urgency": "low",
 "emotions": ["joy"], "keywords": ["excellent"], "themes": ["service"],
 "classification": {"isComplaint": false, "isPraise": true, "isSuggestion": false},
 "summary": "Happy with the service", "shouldGenerateAction": false}"""


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def db() -> InMemoryDatabase:
    database = InMemoryDatabase()
    database.members[TENANT_ID].update({MANAGER_ID, MEMBER_A, MEMBER_B, MEMBER_C})
    return database


@pytest.fixture
def repos(db):
    return db.repositories(TENANT_ID)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def sla_policy() -> SlaPolicy:
    return SlaPolicy()


@pytest.fixture
def survey(db, clock) -> Survey:
    """Active survey with an NPS, a rating and a free-text question."""
    return db.add_survey(
        Survey(
            tenant_id=TENANT_ID,
            title="Support experience",
            status=SurveyStatus.ACTIVE,
            questions=[
                Question(id="q_nps", type="nps", text="How likely are you to recommend us?"),
                Question(id="q_rating", type="rating", text="Rate our support"),
                Question(id="q_text", type="text", text="Anything else?"),
            ],
            created_at=clock.now() - timedelta(days=10),
        )
    )


@pytest.fixture
def contact(db, clock) -> Contact:
    return db.add_contact(
        Contact(
            tenant_id=TENANT_ID,
            name="Dana Reyes",
            email="dana@example.com",
            created_at=clock.now() - timedelta(days=60),
        )
    )


@pytest.fixture
def make_invite(db, survey, clock):
    def _make(email: str = "dana@example.com", **overrides) -> SurveyInvite:
        fields = {
            "tenant_id": TENANT_ID,
            "survey_id": survey.id,
            "contact": InviteContact(email=email),
            "token": generate_invite_token(),
            "expires_at": clock.now() + timedelta(days=30),
            "created_at": clock.now() - timedelta(days=1),
        }
        fields.update(overrides)
        return db.add_invite(SurveyInvite(**fields))

    return _make


@pytest.fixture
def make_processor(db, sink, sla_policy, clock):
    def _make(*replies, options: ProcessingOptions | None = None) -> ResponseProcessor:
        llm = ScriptedLLM(*replies) if replies else None
        return ResponseProcessor(
            repositories_for=db.repositories,
            analyzer=ContentAnalyzer(llm=llm, timeout_seconds=5, clock=clock),
            catalog=list(DEFAULT_RULES),
            sla_policy=sla_policy,
            notifications=sink,
            options=options,
            clock=clock,
        )

    return _make


def auth_headers(user_id: str = MANAGER_ID, role: str = "admin", tenant_id: str = TENANT_ID) -> dict:
    token = create_access_token(user_id, tenant_id, role, email=f"{role}@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app(db, sink, queue, clock):
    """Application with every store replaced by the in-memory fakes."""
    application = create_app()
    cache = MemoryCache()
    application.dependency_overrides.update(
        {
            get_repositories_factory: lambda: db.repositories,
            get_invite_lookup: db.invite_lookup,
            get_survey_lookup: db.survey_lookup,
            get_job_queue: lambda: queue,
            get_notification_sink: lambda: sink,
            get_geo_locator: lambda: None,
            get_clock: lambda: clock,
            get_segment_cache: lambda: cache,
            get_rule_catalog: lambda: list(DEFAULT_RULES),
        }
    )
    return application


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
