"""Assignment rule API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from surveypulse.core.clock import Clock
from surveypulse.dependencies.auth import ManagerOnly
from surveypulse.dependencies.services import TenantRepos, get_clock
from surveypulse.domains.assignment.schemas import (
    AssignmentRuleCreate,
    AssignmentRuleListResponse,
    AssignmentRuleResponse,
)
from surveypulse.domains.assignment.service import AssignmentRuleService

router = APIRouter(prefix="/assignment-rules")


def get_assignment_rule_service(
    repos: TenantRepos,
    clock: Annotated[Clock, Depends(get_clock)],
) -> AssignmentRuleService:
    """Get assignment rule service for the caller's tenant."""
    return AssignmentRuleService(repositories=repos, clock=clock)


Service = Annotated[AssignmentRuleService, Depends(get_assignment_rule_service)]


@router.post(
    "",
    response_model=AssignmentRuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create assignment rule",
)
async def create_rule(data: AssignmentRuleCreate, user: ManagerOnly, service: Service):
    """Create an assignment rule."""
    rule = await service.create_rule(data)
    return AssignmentRuleResponse.from_rule(rule)


@router.get(
    "",
    response_model=AssignmentRuleListResponse,
    summary="List assignment rules",
    description="List rules in the order they are evaluated.",
)
async def list_rules(user: ManagerOnly, service: Service):
    """List assignment rules."""
    rules = await service.list_rules()
    return AssignmentRuleListResponse(
        items=[AssignmentRuleResponse.from_rule(rule) for rule in rules],
        total=len(rules),
    )


@router.delete(
    "/{rule_id}",
    response_model=AssignmentRuleResponse,
    summary="Deactivate assignment rule",
)
async def deactivate_rule(rule_id: str, user: ManagerOnly, service: Service):
    """Deactivate an assignment rule."""
    rule = await service.deactivate_rule(rule_id)
    return AssignmentRuleResponse.from_rule(rule)
