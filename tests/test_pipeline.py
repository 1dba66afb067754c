"""End-to-end tests for the post-response pipeline."""

from datetime import timedelta

import pytest
from pymongo.errors import AutoReconnect, ServerSelectionTimeoutError

from surveypulse.core.exceptions import IntegrityError, NotFoundError, TransientExternalError
from surveypulse.domains.contact.stats import ContactStatsAggregator
from surveypulse.domains.invite.models import InviteStatus
from surveypulse.domains.response.models import Answer, Response
from surveypulse.domains.response.schemas import AnswerIn, ResponseSubmit
from surveypulse.domains.response.service import RequestInfo, ResponseIntakeService
from surveypulse.domains.rules.models import RuleOverride
from surveypulse.integrations.llm.base import LLMProviderError
from surveypulse.jobs.base import Job, is_retryable
from surveypulse.jobs.inline_queue import InlineJobQueue
from surveypulse.pipeline.processor import ProcessingOptions
from tests.conftest import NEGATIVE_REPLY, PRAISE_REPLY, TENANT_ID
from tests.fakes import InMemoryResponseRepository, MemoryDeadLetters


@pytest.fixture
def dead_letters() -> MemoryDeadLetters:
    return MemoryDeadLetters()


@pytest.fixture
def submit_via(db, clock, dead_letters):
    """Submit through the intake service with the pipeline running inline."""

    async def _submit(processor, token: str, answers: list[AnswerIn], **fields) -> Response:
        queue = InlineJobQueue("responses", processor.handle, dead_letters, max_attempts=3)
        intake = ResponseIntakeService(
            invite_lookup=db.invite_lookup(),
            survey_lookup=db.survey_lookup(),
            repositories_for=db.repositories,
            queue=queue,
            clock=clock,
        )
        return await intake.submit_invited(
            token, ResponseSubmit(answers=answers, **fields), RequestInfo()
        )

    return _submit


def detractor_answers() -> list[AnswerIn]:
    return [
        AnswerIn(question_id="q_nps", answer=3),
        AnswerIn(question_id="q_text", answer="Please call me back"),
    ]


def seed_response(db, survey, clock, text: str, email: str | None = None) -> Response:
    return db.add_response(
        Response(
            tenant_id=TENANT_ID,
            survey_id=survey.id,
            email=email,
            answers=[
                Answer(question_id="q_nps", answer=2),
                Answer(question_id="q_text", answer=text),
            ],
            is_anonymous=True,
            submitted_at=clock.now(),
        )
    )


class TestPipeline:
    async def test_unhappy_detractor_gets_urgent_callback(
        self, db, contact, make_invite, make_processor, submit_via, sink, clock
    ):
        invite = make_invite()

        response = await submit_via(make_processor(NEGATIVE_REPLY), invite.token, detractor_answers())

        stored = db.responses[response.id]
        assert stored.analysis.sentiment == "negative"
        assert stored.analysis.urgency == "high"
        assert stored.analysis.nps_category == "detractor"
        assert stored.analysis.analyzed_at == clock.now()

        [action] = db.actions.values()
        assert action.priority == "high"
        assert action.category in {"Callback", "Customer Complaint"}
        assert action.source == "ai_generated"
        assert action.response_id == response.id
        assert action.due_date == stored.submitted_at + timedelta(hours=4)
        assert action.metadata["nps_score"] == 3

        assert db.invites[invite.id].status == InviteStatus.RESPONDED.value
        stats = db.contacts[contact.id].survey_stats
        assert stats.responded_count == 1
        assert stats.latest_nps_score == 3
        assert stats.nps_category == "detractor"

        assert len(sink.of_type("action_assigned")) == 1

    async def test_praise_is_recognized_without_action(
        self, db, make_invite, make_processor, submit_via
    ):
        invite = make_invite()
        answers = [
            AnswerIn(question_id="q_rating", answer=5),
            AnswerIn(question_id="q_text", answer="Excellent service"),
        ]

        response = await submit_via(make_processor(PRAISE_REPLY), invite.token, answers)

        assert db.actions == {}
        [recognition] = db.recognitions.values()
        assert recognition.response_id == response.id
        assert "praise" in recognition.rules
        assert recognition.themes == ["service"]
        assert db.responses[response.id].analysis.metrics.rating == 5

    async def test_anonymous_praise_is_recognized(
        self, db, survey, make_processor, dead_letters, clock
    ):
        processor = make_processor(PRAISE_REPLY)
        intake = ResponseIntakeService(
            invite_lookup=db.invite_lookup(),
            survey_lookup=db.survey_lookup(),
            repositories_for=db.repositories,
            queue=InlineJobQueue("responses", processor.handle, dead_letters, max_attempts=3),
            clock=clock,
        )

        response = await intake.submit_anonymous(
            survey.id,
            ResponseSubmit(
                answers=[AnswerIn(question_id="q_text", answer="Excellent service")],
                rating=5,
                review="Excellent service",
            ),
            RequestInfo(),
        )

        analysis = db.responses[response.id].analysis
        assert analysis.sentiment == "positive"
        assert analysis.classification.is_praise is True
        assert db.actions == {}
        assert [r.response_id for r in db.recognitions.values()] == [response.id]

    async def test_replay_after_partial_failure_creates_one_action(
        self, db, repos, contact, make_invite, make_processor, submit_via, sink, dead_letters
    ):
        repos.responses.fail_save_analysis = 1
        processor = make_processor(NEGATIVE_REPLY)
        invite = make_invite()

        response = await submit_via(processor, invite.token, detractor_answers())

        assert dead_letters.entries == []
        assert len(db.actions) == 1
        assert len(sink.of_type("action_assigned")) == 1
        assert db.contacts[contact.id].survey_stats.responded_count == 1
        analyzed_at = db.responses[response.id].analysis.analyzed_at

        outcome = await processor.process(TENANT_ID, response.id)

        assert outcome.skipped is True
        assert len(db.actions) == 1
        assert db.responses[response.id].analysis.analyzed_at == analyzed_at
        assert db.contacts[contact.id].survey_stats.responded_count == 1

    async def test_llm_failure_still_records_metrics(
        self, db, make_invite, make_processor, submit_via
    ):
        invite = make_invite()

        response = await submit_via(
            make_processor(LLMProviderError("provider down")), invite.token, detractor_answers()
        )

        analysis = db.responses[response.id].analysis
        assert analysis.sentiment == "neutral"
        assert analysis.fallback_reason is not None
        assert analysis.metrics.nps_score == 3
        # NPS 3 alone still matches the severe detractor rule
        [action] = db.actions.values()
        assert action.metadata["rule"] == "severeDetractor"

    async def test_stats_integrity_failure_is_raised_and_released(
        self, db, repos, contact, make_invite, make_processor, sink, clock
    ):
        invite = make_invite()
        response = db.add_response(
            Response(
                tenant_id=TENANT_ID,
                survey_id=invite.survey_id,
                invite_id=invite.id,
                email=contact.email,
                answers=[Answer(question_id="q_nps", answer=6)],
                submitted_at=clock.now(),
            )
        )
        repos.contacts.conflicts_to_inject = 10
        processor = make_processor(
            NEGATIVE_REPLY, options=ProcessingOptions(stats_max_retries=2)
        )

        with pytest.raises(IntegrityError):
            await processor.process(TENANT_ID, response.id)

        assert db.responses[response.id].stats_synced_at is None
        assert db.responses[response.id].analysis is None
        [alert] = sink.of_type("integrity_alert")
        assert alert.payload["response_id"] == response.id

    async def test_anonymous_responses_can_be_kept_out_of_stats(
        self, db, survey, contact, make_processor, clock
    ):
        response = seed_response(db, survey, clock, "ok", email=contact.email)
        processor = make_processor(
            PRAISE_REPLY, options=ProcessingOptions(count_anonymous_responses=False)
        )

        await processor.process(TENANT_ID, response.id)

        assert db.contacts[contact.id].survey_stats.responded_count == 0
        assert db.responses[response.id].stats_synced_at is None

    async def test_repeated_complaints_raise_an_alert(
        self, db, survey, make_processor, sink, clock
    ):
        processor = make_processor(NEGATIVE_REPLY)
        outcomes = []
        for index in range(3):
            clock.advance(minutes=10)
            response = seed_response(db, survey, clock, f"Awful, call me ({index})")
            outcomes.append(await processor.process(TENANT_ID, response.id))

        assert [len(outcome.alerts) for outcome in outcomes] == [0, 0, 1]
        alert = outcomes[-1].alerts[0]
        assert alert.category == "Customer Complaint"
        assert alert.count == 3
        assert len(sink.of_type("repeated_complaint")) == 1

    async def test_tenant_overrides_change_the_action(self, db, survey, make_processor, clock):
        db.rule_overrides[TENANT_ID] = {
            "negativeHighUrgency": RuleOverride(enabled=False),
            "highUrgency": RuleOverride(enabled=False),
            "severeDetractor": RuleOverride(category="Detractor Outreach"),
        }
        response = seed_response(db, survey, clock, "meh")

        outcome = await make_processor(NEGATIVE_REPLY).process(TENANT_ID, response.id)

        assert outcome.action.category == "Detractor Outreach"

    async def test_missing_response(self, make_processor):
        with pytest.raises(NotFoundError):
            await make_processor(NEGATIVE_REPLY).process(TENANT_ID, "65f0000000000000000000ff")

    async def test_recalculated_stats_match_live_stats(
        self, db, repos, contact, make_invite, make_processor, submit_via, clock
    ):
        invite = make_invite()
        answers = [
            AnswerIn(question_id="q_nps", answer=9),
            AnswerIn(question_id="q_text", answer="Excellent service"),
        ]

        await submit_via(make_processor(PRAISE_REPLY), invite.token, answers, score=2)

        live = db.contacts[contact.id].survey_stats
        assert live.latest_nps_score == 9
        aggregator = ContactStatsAggregator(
            repos.contacts, repos.invites, repos.responses, TENANT_ID, clock=clock
        )
        rebuilt = await aggregator.recalculate_contact(contact.email)

        assert rebuilt.avg_nps_score == live.avg_nps_score == 9
        assert rebuilt.nps_category == live.nps_category == "promoter"
        assert rebuilt.responded_count == live.responded_count == 1

    async def test_store_outage_is_retried(
        self, db, make_invite, make_processor, submit_via, dead_letters, monkeypatch
    ):
        outages = [AutoReconnect("primary stepped down")]
        original = InMemoryResponseRepository.get_by_id

        async def flaky_get_by_id(self, response_id):
            if outages:
                raise outages.pop()
            return await original(self, response_id)

        monkeypatch.setattr(InMemoryResponseRepository, "get_by_id", flaky_get_by_id)
        invite = make_invite()

        response = await submit_via(make_processor(NEGATIVE_REPLY), invite.token, detractor_answers())

        assert outages == []
        assert dead_letters.entries == []
        assert db.responses[response.id].analysis is not None
        assert len(db.actions) == 1

    async def test_store_outage_surfaces_as_transient_error(self, make_processor, monkeypatch):
        async def unavailable(self, response_id):
            raise ServerSelectionTimeoutError("no primary")

        monkeypatch.setattr(InMemoryResponseRepository, "get_by_id", unavailable)
        job = Job(name="responses", payload={"tenant_id": TENANT_ID, "response_id": "r-1"})

        with pytest.raises(TransientExternalError) as exc_info:
            await make_processor(NEGATIVE_REPLY).handle(job)

        assert exc_info.value.status_code == 503
        assert exc_info.value.details["response_id"] == "r-1"
        assert is_retryable(exc_info.value) is True
