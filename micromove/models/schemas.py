from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from micromove.config import DEFAULT_TIMER_MINUTES

class SessionState(str, Enum):
    """Screens of the session flow."""
    START = "start"
    LOADING = "loading"
    SESSION = "session"
    COMPLETE = "complete"

class MicroStep(BaseModel):
    """One bounded, timed unit of a broken-down task."""
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., description="Sequence position")
    text: str
    completed: bool = False
    skipped: bool = False
    time_spent: int = Field(0, alias="timeSpent", description="Seconds spent before 'done'")

class SessionSnapshot(BaseModel):
    """
    Immutable view of a session at one moment.
    Runtime-only fields are excluded from the persisted blob.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    task: str = ""
    steps: List[MicroStep] = Field(default_factory=list)
    current_step_index: int = Field(0, alias="currentStepIndex")
    time_left: int = Field(DEFAULT_TIMER_MINUTES * 60, alias="timeLeft")
    total_time_spent: int = Field(0, alias="totalTimeSpent")
    state: SessionState = SessionState.START

    timer_duration: int = Field(DEFAULT_TIMER_MINUTES * 60, exclude=True)
    is_timer_running: bool = Field(False, exclude=True)
    is_reframing: bool = Field(False, exclude=True)

    @property
    def current_step(self) -> Optional[MicroStep]:
        if 0 <= self.current_step_index < len(self.steps):
            return self.steps[self.current_step_index]
        return None

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index >= len(self.steps) - 1

    @property
    def completed_steps(self) -> int:
        return sum(1 for s in self.steps if s.completed)

    @property
    def skipped_steps(self) -> int:
        return sum(1 for s in self.steps if s.skipped)

    @property
    def progress(self) -> float:
        """Percent of steps that are done or skipped."""
        if not self.steps:
            return 0.0
        return (self.completed_steps + self.skipped_steps) / len(self.steps) * 100

    @property
    def timer_progress(self) -> float:
        if self.timer_duration <= 0:
            return 0.0
        return self.time_left / self.timer_duration

    def to_storage(self) -> dict:
        """Serializes to the persisted session blob (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True)

class BreakdownResponse(BaseModel):
    steps: List[str]

class ReframeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_step: str = Field(..., alias="newStep")

class ErrorResponse(BaseModel):
    error: str
