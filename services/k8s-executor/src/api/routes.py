"""
Kube Actuator - K8s Executor API Routes
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request

from shared.constants import TurboActionStatus, TERMINAL_STATUSES
from shared.schemas.actions import TurboAction
from shared.utils.logging import get_logger

from src.api.schemas import ExecuteRequest, ExecuteResponse, ActionListResponse
from src.core.errors import ActionExecutionError

logger = get_logger(__name__)

router = APIRouter()


def _schedule_report(request: Request, background_tasks: BackgroundTasks, action: Optional[TurboAction]) -> None:
    reporter = getattr(request.app.state, "reporter", None)
    if reporter is None or action is None or action.status not in TERMINAL_STATUSES:
        return
    background_tasks.add_task(reporter.report, action)


@router.post("/actions/execute", response_model=ExecuteResponse, tags=["execute"])
async def execute_action(req: ExecuteRequest, request: Request, background_tasks: BackgroundTasks):
    """Execute a horizontal scaling action item."""
    scaler = request.app.state.scaler
    store = request.app.state.store
    item = req.action_item

    logger.info(
        f"Executing action: {item.action_type.value}",
        extra={"action_uid": item.uuid, "target": item.target_se.id}
    )

    try:
        action = await scaler.execute(item)
    except ActionExecutionError as e:
        action = store.get(item.uuid)
        _schedule_report(request, background_tasks, action)
        return ExecuteResponse(
            action_uid=item.uuid,
            status=TurboActionStatus.FAILED,
            message=str(e),
            action=action,
            error_type=e.error_type,
            mutation_committed=e.mutation_committed,
        )

    _schedule_report(request, background_tasks, action)
    return ExecuteResponse(
        action_uid=action.uid,
        status=action.status,
        message=f"{action.content.action_type.value} executed",
        action=action,
    )


@router.get("/actions", response_model=ActionListResponse, tags=["history"])
async def list_actions(
    request: Request,
    limit: int = Query(default=20, ge=1, le=500),
    status: Optional[TurboActionStatus] = None,
):
    """List recent action records."""
    store = request.app.state.store
    return ActionListResponse(
        actions=store.list_actions(status=status, limit=limit),
        count=store.count(),
        active=store.active_count(),
    )


@router.get("/actions/{uid}", response_model=TurboAction, tags=["history"])
async def get_action(uid: str, request: Request):
    """Get one action record."""
    action = request.app.state.store.get(uid)
    if action is None:
        raise HTTPException(status_code=404, detail=f"Action {uid} not found")
    return action
