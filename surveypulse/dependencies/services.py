"""Service wiring dependencies for FastAPI.

Routers build their services from these providers so tests can swap the
MongoDB-backed repositories, the queue and the clock through
``app.dependency_overrides``.
"""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Request

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.config import settings
from surveypulse.db.mongodb import get_mongodb
from surveypulse.db.redis import RedisCache, segment_count_cache
from surveypulse.dependencies.auth import CurrentUser
from surveypulse.domains.action.sla import SlaPolicy
from surveypulse.domains.invite.repository import (
    InviteTokenLookupInterface,
    MongoInviteTokenLookup,
)
from surveypulse.domains.repositories import TenantRepositories, mongo_repositories
from surveypulse.domains.rules.catalog import load_catalog
from surveypulse.domains.rules.models import Rule
from surveypulse.domains.survey.repository import (
    MongoPublicSurveyLookup,
    PublicSurveyLookupInterface,
)
from surveypulse.integrations.geo import GeoLocator
from surveypulse.integrations.notifications import NotificationSink
from surveypulse.jobs.base import JobQueue

RepositoryFactory = Callable[[str], TenantRepositories]


def get_repositories_factory() -> RepositoryFactory:
    """Factory building the tenant-bound MongoDB repositories."""
    db = get_mongodb()
    return lambda tenant_id: mongo_repositories(db, tenant_id)


def get_tenant_repositories(
    user: CurrentUser,
    factory: Annotated[RepositoryFactory, Depends(get_repositories_factory)],
) -> TenantRepositories:
    """Repositories bound to the caller's tenant."""
    return factory(user["tenant_id"])


def get_invite_lookup() -> InviteTokenLookupInterface:
    return MongoInviteTokenLookup(get_mongodb())


def get_survey_lookup() -> PublicSurveyLookupInterface:
    return MongoPublicSurveyLookup(get_mongodb())


def get_job_queue(request: Request) -> JobQueue:
    """Queue created at startup."""
    return request.app.state.job_queue


def get_notification_sink(request: Request) -> NotificationSink | None:
    return getattr(request.app.state, "notifications", None)


def get_geo_locator(request: Request) -> GeoLocator | None:
    return getattr(request.app.state, "geo", None)


def get_segment_cache() -> RedisCache:
    return segment_count_cache


def get_sla_policy() -> SlaPolicy:
    return SlaPolicy.from_settings(settings)


def get_rule_catalog() -> list[Rule]:
    """Configured action rule catalog, before tenant overrides."""
    return load_catalog(settings.rule_catalog_path)


def get_clock() -> Clock:
    return system_clock


TenantRepos = Annotated[TenantRepositories, Depends(get_tenant_repositories)]
