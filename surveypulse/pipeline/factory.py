"""Wiring of the response processor from settings."""

import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.config import Settings
from surveypulse.domains.action.sla import SlaPolicy
from surveypulse.domains.analysis.analyzer import ContentAnalyzer
from surveypulse.domains.repositories import mongo_repositories
from surveypulse.domains.rules.catalog import load_catalog
from surveypulse.integrations.llm import LLMProvider, LLMProviderType, get_llm_provider
from surveypulse.integrations.llm.factory import get_available_providers
from surveypulse.integrations.notifications import NotificationSink
from surveypulse.pipeline.processor import ProcessingOptions, ResponseProcessor

logger = logging.getLogger(__name__)


def select_llm_provider(settings: Settings) -> LLMProvider | None:
    """
    The configured provider, else the first one with credentials.

    Returns None when no provider is configured; analysis then uses the
    neutral fallback.
    """
    available = get_available_providers()
    if not available:
        logger.warning("No LLM provider configured, responses get neutral analysis")
        return None

    preferred = LLMProviderType(settings.llm_provider.lower())
    provider_type = preferred if preferred in available else available[0]
    if provider_type != preferred:
        logger.warning(f"LLM provider '{preferred.value}' not configured, using '{provider_type.value}'")
    return get_llm_provider(provider_type)


def build_response_processor(
    settings: Settings,
    db: AsyncIOMotorDatabase,
    notifications: NotificationSink | None,
    llm: LLMProvider | None = None,
    clock: Clock = system_clock,
) -> ResponseProcessor:
    """Processor backed by MongoDB repositories."""
    analyzer = ContentAnalyzer(
        llm=llm,
        timeout_seconds=settings.llm_timeout_seconds,
        max_tokens=settings.llm_max_tokens,
        clock=clock,
    )
    return ResponseProcessor(
        repositories_for=lambda tenant_id: mongo_repositories(db, tenant_id),
        analyzer=analyzer,
        catalog=load_catalog(settings.rule_catalog_path),
        sla_policy=SlaPolicy.from_settings(settings),
        notifications=notifications,
        options=ProcessingOptions(
            stats_max_retries=settings.stats_max_retries,
            count_anonymous_responses=settings.count_anonymous_responses,
            alert_window_hours=settings.alert_window_hours,
            alert_threshold=settings.alert_threshold,
        ),
        clock=clock,
    )
