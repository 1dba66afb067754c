"""Post-response processing: analysis, contact stats, rules, actions, alerts."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from pymongo.errors import ConnectionFailure

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.exceptions import (
    IntegrityError,
    NotFoundError,
    TransientExternalError,
    ValidationError,
)
from surveypulse.core.logging import log_context
from surveypulse.domains.action.models import Action, ActionSource
from surveypulse.domains.action.sla import SlaPolicy
from surveypulse.domains.action.writer import ActionDraft, ActionWriter
from surveypulse.domains.alert.detector import Alert, AlertDetector
from surveypulse.domains.analysis.analyzer import ContentAnalyzer
from surveypulse.domains.assignment.engine import AssignmentEngine
from surveypulse.domains.contact.stats import ContactStatsAggregator
from surveypulse.domains.recognition.models import Recognition
from surveypulse.domains.repositories import TenantRepositories
from surveypulse.domains.response.models import Response, ResponseAnalysis
from surveypulse.domains.rules.catalog import apply_overrides
from surveypulse.domains.rules.evaluator import (
    ActionCandidate,
    RuleDecision,
    evaluate_rules,
    resolve_priority,
)
from surveypulse.domains.rules.models import Rule
from surveypulse.integrations.notifications import (
    NotificationEvent,
    NotificationSink,
    publish_safely,
)
from surveypulse.jobs.base import Job

logger = logging.getLogger(__name__)

RepositoryFactory = Callable[[str], TenantRepositories]


@dataclass
class ProcessingOptions:
    """Tunables for one processor."""

    stats_max_retries: int = 5
    count_anonymous_responses: bool = True
    alert_window_hours: int = 24
    alert_threshold: int = 3


@dataclass
class ProcessingOutcome:
    """What processing one response produced."""

    response_id: str
    skipped: bool = False
    analysis: ResponseAnalysis | None = None
    action: Action | None = None
    action_created: bool = False
    recognition: Recognition | None = None
    alerts: list[Alert] = field(default_factory=list)


def build_action_writer(
    repos: TenantRepositories,
    sla_policy: SlaPolicy,
    notifications: NotificationSink | None,
    clock: Clock = system_clock,
) -> ActionWriter:
    """Action writer wired to the tenant's assignment rules."""
    engine = AssignmentEngine(repos.assignment_rules, repos.actions, repos.tenant_id)
    return ActionWriter(
        actions=repos.actions,
        assignment=engine,
        sla_policy=sla_policy,
        notifications=notifications,
        tenant_id=repos.tenant_id,
        clock=clock,
    )


def draft_from_candidate(
    candidate: ActionCandidate,
    response: Response,
    analysis: ResponseAnalysis,
    source: str,
    created_by: str | None = None,
) -> ActionDraft:
    """Turn the evaluator's primary candidate into an action draft."""
    metrics = analysis.metrics
    return ActionDraft(
        title=candidate.title,
        description=candidate.description,
        priority=candidate.priority,
        category=candidate.category,
        tags=candidate.tags,
        source=source,
        response_id=response.id,
        survey_id=response.survey_id,
        created_by=created_by,
        metadata={
            "rule": candidate.rule_name,
            "survey_id": response.survey_id,
            "sentiment": analysis.sentiment,
            "urgency": analysis.urgency,
            "nps_score": metrics.nps_score if metrics else response.score,
            "rating": metrics.rating if metrics else response.rating,
            "nps_category": analysis.nps_category,
            "respondent_email": response.email,
        },
    )


class ResponseProcessor:
    """
    Runs the post-response pipeline for one response.

    Safe to run more than once for the same response: a response whose
    analysis is already stored is skipped, stats are applied under a
    per-response claim, and the primary action is unique per response.
    """

    def __init__(
        self,
        repositories_for: RepositoryFactory,
        analyzer: ContentAnalyzer,
        catalog: list[Rule],
        sla_policy: SlaPolicy,
        notifications: NotificationSink | None,
        options: ProcessingOptions | None = None,
        clock: Clock = system_clock,
    ):
        self._repositories_for = repositories_for
        self._analyzer = analyzer
        self._catalog = catalog
        self._sla = sla_policy
        self._notifications = notifications
        self._options = options or ProcessingOptions()
        self._clock = clock

    async def handle(self, job: Job) -> None:
        """Job handler entry point."""
        payload = job.payload
        tenant_id = payload.get("tenant_id")
        response_id = payload.get("response_id")
        if not tenant_id or not response_id:
            raise ValidationError("Job payload needs tenant_id and response_id")
        try:
            await self.process(tenant_id, response_id)
        except ConnectionFailure as e:
            raise TransientExternalError(
                "Response store unavailable",
                details={"response_id": response_id, "reason": str(e)},
            ) from e

    async def process(self, tenant_id: str, response_id: str) -> ProcessingOutcome:
        repos = self._repositories_for(tenant_id)
        context = log_context(tenant_id=tenant_id, response_id=response_id)

        response = await repos.responses.get_by_id(response_id)
        if not response:
            raise NotFoundError("Response", response_id)
        if response.analysis and response.analysis.analyzed_at:
            logger.info("Response already analyzed, skipping", extra=context)
            return ProcessingOutcome(response_id=response_id, skipped=True)

        context = log_context(
            tenant_id=tenant_id, survey_id=response.survey_id, response_id=response_id
        )
        survey = await repos.surveys.get_by_id(response.survey_id)
        if not survey:
            raise NotFoundError("Survey", response.survey_id)

        result = await self._analyzer.analyze(response, survey)
        analysis = self._analyzer.build_analysis(result)
        outcome = ProcessingOutcome(response_id=response_id, analysis=analysis)

        await self._sync_contact_stats(repos, response, analysis)

        rules = apply_overrides(self._catalog, await repos.rule_overrides.get_overrides())
        decision = resolve_priority(evaluate_rules(rules, analysis, response), analysis, response)
        logger.info(
            f"Matched rules: {[rule.name for rule in decision.matched]}",
            extra=context,
        )

        if decision.recognitions:
            outcome.recognition = await self._record_recognition(repos, response, analysis, decision)

        if decision.primary:
            writer = build_action_writer(repos, self._sla, self._notifications, self._clock)
            outcome.action, outcome.action_created = await writer.create(
                draft_from_candidate(
                    decision.primary, response, analysis, ActionSource.AI_GENERATED.value
                )
            )

        saved = await repos.responses.save_analysis(response_id, analysis)
        if not saved:
            logger.info("Analysis was stored by another worker", extra=context)

        if outcome.action_created:
            detector = AlertDetector(repos.actions, self._notifications, tenant_id, self._clock)
            outcome.alerts = await detector.check_repeated_complaints(
                hours=self._options.alert_window_hours,
                threshold=self._options.alert_threshold,
                category=outcome.action.category,
            )

        logger.info("Response processed", extra=context)
        return outcome

    async def _sync_contact_stats(
        self, repos: TenantRepositories, response: Response, analysis: ResponseAnalysis
    ) -> None:
        if not response.email:
            return
        if response.is_anonymous and not self._options.count_anonymous_responses:
            return

        context = log_context(tenant_id=repos.tenant_id, response_id=response.id)
        if not await repos.responses.claim_stats_sync(response.id, self._clock.now()):
            logger.info("Contact stats already applied for response", extra=context)
            return

        aggregator = ContactStatsAggregator(
            contacts=repos.contacts,
            invites=repos.invites,
            responses=repos.responses,
            tenant_id=repos.tenant_id,
            max_retries=self._options.stats_max_retries,
            include_anonymous=self._options.count_anonymous_responses,
            clock=self._clock,
        )
        metrics = analysis.metrics
        try:
            await aggregator.on_survey_response(
                response.email,
                nps_score=metrics.nps_score if metrics else response.score,
                rating=metrics.rating if metrics else response.rating,
                responded_at=response.submitted_at,
            )
        except IntegrityError as e:
            await repos.responses.release_stats_sync(response.id)
            logger.error(f"Contact stats integrity failure: {e.message}", extra=context)
            await publish_safely(
                self._notifications,
                NotificationEvent(
                    type="integrity_alert",
                    tenant_id=repos.tenant_id,
                    payload={"response_id": response.id, "message": e.message},
                    created_at=self._clock.now(),
                ),
            )
            raise
        except Exception:
            await repos.responses.release_stats_sync(response.id)
            raise

    async def _record_recognition(
        self,
        repos: TenantRepositories,
        response: Response,
        analysis: ResponseAnalysis,
        decision: RuleDecision,
    ) -> Recognition:
        recognition = await repos.recognitions.record(
            Recognition(
                tenant_id=repos.tenant_id,
                response_id=response.id,
                survey_id=response.survey_id,
                contact_id=response.contact_id,
                rules=[rule.name for rule in decision.recognitions],
                summary=analysis.summary or response.review or "",
                themes=analysis.themes,
                sentiment_score=analysis.sentiment_score,
                created_at=self._clock.now(),
            )
        )
        logger.info(
            "Recognition recorded",
            extra=log_context(tenant_id=repos.tenant_id, response_id=response.id),
        )
        return recognition
