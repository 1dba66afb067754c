"""Action API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from surveypulse.core.clock import Clock
from surveypulse.core.config import settings
from surveypulse.dependencies.auth import CurrentUser, ManagerOnly
from surveypulse.dependencies.services import (
    TenantRepos,
    get_clock,
    get_notification_sink,
    get_rule_catalog,
    get_sla_policy,
)
from surveypulse.domains.action.models import ActionPriority, ActionSource, ActionStatus
from surveypulse.domains.action.schemas import (
    ActionAssign,
    ActionCreate,
    ActionListResponse,
    ActionResponse,
    ActionUpdate,
    BulkActionUpdate,
    BulkUpdateResult,
    GenerateFromFeedback,
    GenerateResult,
)
from surveypulse.domains.action.service import ActionFilters, ActionService
from surveypulse.domains.action.sla import SlaPolicy
from surveypulse.domains.rules.models import Rule
from surveypulse.integrations.notifications import NotificationSink

router = APIRouter(prefix="/actions")


def get_action_service(
    repos: TenantRepos,
    catalog: Annotated[list[Rule], Depends(get_rule_catalog)],
    sla_policy: Annotated[SlaPolicy, Depends(get_sla_policy)],
    notifications: Annotated[NotificationSink | None, Depends(get_notification_sink)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> ActionService:
    """Get action service for the caller's tenant."""
    return ActionService(
        repositories=repos,
        catalog=catalog,
        sla_policy=sla_policy,
        notifications=notifications,
        alert_window_hours=settings.alert_window_hours,
        alert_threshold=settings.alert_threshold,
        clock=clock,
    )


Service = Annotated[ActionService, Depends(get_action_service)]


@router.get(
    "",
    response_model=ActionListResponse,
    summary="List actions",
    description="List actions newest first with cursor pagination.",
)
async def list_actions(
    user: CurrentUser,
    service: Service,
    status_filter: Annotated[ActionStatus | None, Query(alias="status")] = None,
    priority: Annotated[ActionPriority | None, Query()] = None,
    assigned_to: Annotated[str | None, Query(alias="assignedTo")] = None,
    category: Annotated[str | None, Query()] = None,
    source: Annotated[ActionSource | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    cursor: Annotated[str | None, Query()] = None,
):
    """List actions of the tenant."""
    filters = ActionFilters(
        status=status_filter.value if status_filter else None,
        priority=priority.value if priority else None,
        assigned_to=assigned_to,
        category=category,
        source=source.value if source else None,
    )
    actions, next_cursor, has_more = await service.list_actions(filters, limit, cursor)
    return ActionListResponse(
        items=[ActionResponse.from_action(action) for action in actions],
        has_more=has_more,
        next_cursor=next_cursor,
    )


@router.post(
    "",
    response_model=ActionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create action",
    description="Create an action by hand. Assignment rules apply when no assignee is given.",
)
async def create_action(data: ActionCreate, user: CurrentUser, service: Service):
    """Create a manual action."""
    action = await service.create_action(data, user)
    return ActionResponse.from_action(action)


@router.put(
    "/bulk",
    response_model=BulkUpdateResult,
    summary="Bulk update actions",
    description="Apply a status, priority or assignee to several actions.",
)
async def bulk_update_actions(data: BulkActionUpdate, user: ManagerOnly, service: Service):
    """Bulk update actions."""
    actions = await service.bulk_update(data, user)
    return BulkUpdateResult(
        updated=len(actions),
        items=[ActionResponse.from_action(action) for action in actions],
    )


@router.post(
    "/generate/feedback",
    response_model=GenerateResult,
    status_code=status.HTTP_201_CREATED,
    summary="Generate actions from feedback",
    description="Run the rule catalog over analyzed responses and create the resulting actions.",
)
async def generate_from_feedback(
    data: GenerateFromFeedback, user: ManagerOnly, service: Service
):
    """Generate actions from survey feedback."""
    created, skipped = await service.generate_from_feedback(data.response_ids, user)
    return GenerateResult(
        created=[ActionResponse.from_action(action) for action in created],
        skipped=skipped,
    )


@router.get(
    "/{action_id}",
    response_model=ActionResponse,
    summary="Get action",
)
async def get_action(action_id: str, user: CurrentUser, service: Service):
    """Get action by ID."""
    action = await service.get_action(action_id)
    return ActionResponse.from_action(action)


@router.put(
    "/{action_id}",
    response_model=ActionResponse,
    summary="Update action",
    description="Update title, description, priority, status, category or tags.",
)
async def update_action(
    action_id: str, data: ActionUpdate, user: CurrentUser, service: Service
):
    """Update an action."""
    action = await service.update_action(action_id, data, user)
    return ActionResponse.from_action(action)


@router.delete(
    "/{action_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete action",
)
async def delete_action(action_id: str, user: ManagerOnly, service: Service):
    """Soft delete an action."""
    await service.delete_action(action_id)


@router.put(
    "/{action_id}/assign",
    response_model=ActionResponse,
    summary="Assign action",
    description="Reassign an action by hand.",
)
async def assign_action(
    action_id: str, data: ActionAssign, user: ManagerOnly, service: Service
):
    """Reassign an action."""
    action = await service.assign_action(action_id, data, user)
    return ActionResponse.from_action(action)
