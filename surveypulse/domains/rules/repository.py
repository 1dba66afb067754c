"""Per-tenant rule override repository for MongoDB."""

from abc import ABC, abstractmethod

from motor.motor_asyncio import AsyncIOMotorDatabase

from surveypulse.domains.rules.models import RuleOverride


class RuleOverrideRepositoryInterface(ABC):
    """Abstract repository interface for tenant rule overrides."""

    @abstractmethod
    async def get_overrides(self) -> dict[str, RuleOverride]:
        """Overrides keyed by rule name."""
        pass


class MongoRuleOverrideRepository(RuleOverrideRepositoryInterface):
    """Reads ``rule_overrides`` from the tenant's config document."""

    def __init__(self, db: AsyncIOMotorDatabase, tenant_id: str):
        self._tenant_id = tenant_id
        self._collection = db["tenant_configs"]

    async def get_overrides(self) -> dict[str, RuleOverride]:
        """Overrides keyed by rule name."""
        doc = await self._collection.find_one(
            {"tenant_id": self._tenant_id}, {"rule_overrides": 1}
        )
        if not doc:
            return {}
        return {
            name: RuleOverride(**override)
            for name, override in (doc.get("rule_overrides") or {}).items()
        }
