from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


InputKindLiteral = Literal["improve_basic_input", "user_feedback", "finish"]


class BasicInput(BaseModel):
    repo_name: str = Field(..., min_length=1, description="Repository name")
    main_goal: str = Field(default="", description="What the reader wants to learn from the code")
    specific_areas: Optional[str] = Field(default=None, description="Areas to focus on")
    file_structure: List[str] = Field(default_factory=list, description="Repository file paths")
    github_url: Optional[str] = None
    github_ref: Optional[str] = None


class CreateFlowRequest(BaseModel):
    run_id: Optional[str] = Field(default=None, description="Client-chosen run id; generated when omitted")
    basic: BasicInput


class CreateFlowResponse(BaseModel):
    run_id: str
    created: bool
    queued: bool
    trace_id: Optional[str] = None


class FlowSummary(BaseModel):
    run_id: str
    basic: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
    completed: bool = False


class FlowListResponse(BaseModel):
    flows: List[FlowSummary]


class FlowStatusResponse(BaseModel):
    run_id: str
    call_to_action: Optional[str] = None
    completed: bool = False
    running_here: bool = False
    resumption_queued: bool = False
    shared: Dict[str, Any] = Field(default_factory=dict)


class UserInputRequest(BaseModel):
    input_kind: InputKindLiteral
    payload: Any = None


class UserInputResponse(BaseModel):
    success: bool
    message: str


class DeleteFlowResponse(BaseModel):
    run_id: str
    deleted: bool


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    trace_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
