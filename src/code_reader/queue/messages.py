from __future__ import annotations

import time
from typing import Literal

from pydantic import BaseModel, Field


FlowAction = Literal["trigger", "resume"]


class FlowExecutionMessage(BaseModel):
    run_id: str = Field(..., min_length=1)
    action: FlowAction = "trigger"
    timestamp: float = Field(default_factory=time.time, description="Enqueue time, epoch seconds")
