"""Tests for the segment filter compiler and segment service."""

from datetime import timedelta

import pytest

from surveypulse.core.exceptions import ForbiddenError, SegmentFilterError
from surveypulse.domains.contact.models import Contact, ContactEnrichment, SurveyStats
from surveypulse.domains.segment.compiler import compile_filters
from surveypulse.domains.segment.models import SYSTEM_SEGMENTS
from surveypulse.domains.segment.schemas import SegmentCreate, SegmentUpdate
from surveypulse.domains.segment.service import SegmentService
from tests.conftest import TENANT_ID
from tests.fakes import MemoryCache, matches


class TestCompileFilters:
    def test_detractors_inactive_for_a_month(self, clock):
        query = compile_filters({"npsCategory": "detractor", "inactiveDays": 30}, clock.now())

        assert query == {
            "survey_stats.nps_category": "detractor",
            "last_activity": {"$lte": clock.now() - timedelta(days=30)},
        }

    def test_tag_and_location_keys(self, clock):
        query = compile_filters(
            {"hasTags": ["vip", "beta"], "countries": ["DE", "FR"], "city": "Berlin"},
            clock.now(),
        )
        assert query == {
            "tags": {"$in": ["vip", "beta"]},
            "enrichment.country": {"$in": ["DE", "FR"]},
            "enrichment.city": "Berlin",
        }

    def test_company_contains_is_escaped(self, clock):
        query = compile_filters({"companyContains": "a.b (x)"}, clock.now())
        assert query["company"] == {"$regex": r"a\.b\ \(x\)", "$options": "i"}

    def test_colliding_fields_are_merged(self, clock):
        query = compile_filters({"npsAbove": 3, "npsBelow": 8}, clock.now())
        assert query == {"survey_stats.latest_nps_score": {"$gt": 3, "$lt": 8}}

        query = compile_filters({"hasTag": "vip", "hasTags": ["a", "b"]}, clock.now())
        assert query["tags"] == {"$in": ["vip"]}
        assert query["$and"] == [{"tags": {"$in": ["a", "b"]}}]

    def test_nested_or(self, clock):
        query = compile_filters(
            {"status": "Active", "$or": [{"hasTag": "vip"}, {"npsBelow": 5}]}, clock.now()
        )
        assert query == {
            "status": "Active",
            "$or": [
                {"tags": {"$in": ["vip"]}},
                {"survey_stats.latest_nps_score": {"$lt": 5}},
            ],
        }

    def test_false_flags_add_nothing(self, clock):
        assert compile_filters({"hasResponded": False}, clock.now()) == {}

    @pytest.mark.parametrize(
        "filters",
        [
            {"$where": "this.a == 1"},
            {"email": "x@example.com"},
            {"$or": [{"$where": "sleep(1000)"}]},
            {"npsCategory": {"$ne": "promoter"}},
            {"npsCategory": "fan"},
            {"inactiveDays": 0},
            {"inactiveDays": "30"},
            {"minResponses": True},
            {"hasTags": []},
            {"hasResponded": "yes"},
            {"npsBetween": [8, 2]},
            {"$or": []},
            {"status": "Deleted"},
            {"npsAbove": float("nan")},
            {"npsBetween": [0, float("inf")]},
        ],
    )
    def test_invalid_filters_are_rejected(self, clock, filters):
        with pytest.raises(SegmentFilterError):
            compile_filters(filters, clock.now())

    def test_deep_nesting_is_rejected(self, clock):
        filters: dict = {"hasTag": "x"}
        for _ in range(7):
            filters = {"$and": [filters]}
        with pytest.raises(SegmentFilterError):
            compile_filters(filters, clock.now())


@pytest.fixture
def audience(db, clock):
    """Four contacts; only Ana is an inactive detractor."""

    def add(name, nps_category=None, days_inactive=None, **fields):
        last_activity = clock.now() - timedelta(days=days_inactive) if days_inactive else None
        return db.add_contact(
            Contact(
                tenant_id=TENANT_ID,
                name=name,
                email=f"{name.lower()}@example.com",
                survey_stats=SurveyStats(
                    nps_category=nps_category,
                    responded_count=1 if nps_category else 0,
                    invited_count=1,
                ),
                last_activity=last_activity,
                **fields,
            )
        )

    return {
        "ana": add("Ana", "detractor", 45, company="Acme Corp"),
        "ben": add("Ben", "detractor", 3),
        "cy": add("Cy", "promoter", 60, enrichment=ContactEnrichment(country="DE")),
        "dee": add("Dee"),
    }


class TestCompiledQueriesSelectContacts:
    def select(self, db, query) -> set[str]:
        return {
            contact.name
            for contact in db.contacts.values()
            if matches(contact.model_dump(), query)
        }

    def test_at_risk_selects_inactive_detractors(self, db, audience, clock):
        query = compile_filters({"npsCategory": "detractor", "inactiveDays": 30}, clock.now())
        assert self.select(db, query) == {"Ana"}

    def test_invited_but_not_responded(self, db, audience, clock):
        query = compile_filters({"invitedButNotResponded": True}, clock.now())
        assert self.select(db, query) == {"Dee"}

    def test_never_responded_and_company(self, db, audience, clock):
        assert self.select(db, compile_filters({"neverResponded": True}, clock.now())) == {"Dee"}
        assert self.select(db, compile_filters({"companyContains": "acme"}, clock.now())) == {"Ana"}

    def test_or_across_location_and_score(self, db, audience, clock):
        query = compile_filters(
            {"$or": [{"country": "DE"}, {"activeDays": 7}]}, clock.now()
        )
        assert self.select(db, query) == {"Cy", "Ben"}


@pytest.fixture
def segment_service(repos, clock):
    return SegmentService(
        repos.segments, repos.contacts, MemoryCache(), TENANT_ID, cache_ttl=60, clock=clock
    )


class TestSegmentService:
    async def test_system_segments_are_seeded_once(self, segment_service):
        first = await segment_service.list_segments()
        second = await segment_service.list_segments()

        assert len(first) == len(SYSTEM_SEGMENTS)
        assert len(second) == len(SYSTEM_SEGMENTS)
        assert all(segment.is_system for segment in first)

    async def test_system_segments_cannot_be_changed(self, segment_service):
        segment = (await segment_service.list_segments())[0]

        with pytest.raises(ForbiddenError):
            await segment_service.delete_segment(segment.id)
        with pytest.raises(ForbiddenError):
            await segment_service.update_segment(segment.id, SegmentUpdate(name="Mine"))

    async def test_create_preview_and_count(self, segment_service, audience):
        segment = await segment_service.create_segment(
            SegmentCreate(name="At risk", filters={"npsCategory": "detractor"}), "user-1"
        )

        contacts, total = await segment_service.preview_segment(segment.id)
        assert total == 2
        assert {contact.name for contact in contacts} == {"Ana", "Ben"}

        assert await segment_service.count_segment(segment.id) == (2, False)
        assert await segment_service.count_segment(segment.id) == (2, True)

    async def test_update_invalidates_cached_count(self, segment_service, audience):
        segment = await segment_service.create_segment(
            SegmentCreate(name="Detractors", filters={"npsCategory": "detractor"}), "user-1"
        )
        await segment_service.count_segment(segment.id)

        await segment_service.update_segment(
            segment.id, SegmentUpdate(filters={"npsCategory": "promoter"})
        )

        assert await segment_service.count_segment(segment.id) == (1, False)

    async def test_invalid_filters_are_not_saved(self, db, segment_service):
        with pytest.raises(SegmentFilterError):
            await segment_service.create_segment(
                SegmentCreate(name="Bad", filters={"$where": "1"}), "user-1"
            )
        assert db.segments == {}
