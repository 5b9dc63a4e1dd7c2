from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends, Request

from code_reader.api.deps import get_coordinator
from code_reader.api.errors import APIError
from code_reader.api.schemas import (
    CreateFlowRequest,
    CreateFlowResponse,
    DeleteFlowResponse,
    FlowListResponse,
    FlowStatusResponse,
    FlowSummary,
    UserInputRequest,
    UserInputResponse,
)
from code_reader.graphs.state import call_to_action, new_shared_state
from code_reader.orchestrator.coordinator import FlowCoordinator


router = APIRouter()


def _not_found(run_id: str) -> APIError:
    return APIError(f"flow not found: {run_id}", status_code=404, code="flow_not_found")


@router.post("/flows", response_model=CreateFlowResponse, status_code=201, summary="Create and start a run")
async def create_flow(
    request: Request,
    body: CreateFlowRequest,
    coordinator: FlowCoordinator = Depends(get_coordinator),
) -> CreateFlowResponse:
    run_id = body.run_id or uuid4().hex
    shared = new_shared_state(body.basic.model_dump(exclude_none=True))
    created = await coordinator.initialize_flow(run_id, shared)
    if not created:
        raise APIError(f"flow already exists: {run_id}", status_code=409, code="flow_exists")
    await coordinator.queue_flow_execution(run_id, "trigger")
    return CreateFlowResponse(
        run_id=run_id,
        created=True,
        queued=True,
        trace_id=getattr(request.state, "trace_id", None),
    )


@router.get("/flows", response_model=FlowListResponse, summary="List runs, newest first")
async def list_flows(coordinator: FlowCoordinator = Depends(get_coordinator)) -> FlowListResponse:
    flows = await coordinator.list_flows()
    return FlowListResponse(flows=[FlowSummary(**item) for item in flows])


@router.get("/flows/{run_id}", response_model=FlowStatusResponse, summary="Run status")
async def get_flow(run_id: str, coordinator: FlowCoordinator = Depends(get_coordinator)) -> FlowStatusResponse:
    shared = await coordinator.get_flow(run_id)
    if shared is None:
        raise _not_found(run_id)
    running_here = run_id in coordinator.registry
    queued = False
    if not running_here:
        queued = await coordinator.check_and_queue_flow_resumption(run_id, shared)
    return FlowStatusResponse(
        run_id=run_id,
        call_to_action=call_to_action(shared),
        completed=bool(shared.get("completed")),
        running_here=running_here,
        resumption_queued=queued,
        shared=shared,
    )


@router.post("/flows/{run_id}/input", response_model=UserInputResponse, summary="Answer a paused run")
async def submit_input(
    run_id: str,
    body: UserInputRequest,
    coordinator: FlowCoordinator = Depends(get_coordinator),
) -> UserInputResponse:
    if await coordinator.get_flow(run_id) is None:
        raise _not_found(run_id)
    result = await coordinator.handle_user_input(run_id, body.input_kind, body.payload)
    if not result.success:
        raise APIError(result.message, status_code=409, code="input_rejected")
    return UserInputResponse(success=result.success, message=result.message)


@router.delete("/flows/{run_id}", response_model=DeleteFlowResponse, summary="Delete a run")
async def delete_flow(run_id: str, coordinator: FlowCoordinator = Depends(get_coordinator)) -> DeleteFlowResponse:
    deleted = await coordinator.delete_flow(run_id)
    if not deleted:
        raise _not_found(run_id)
    return DeleteFlowResponse(run_id=run_id, deleted=True)
