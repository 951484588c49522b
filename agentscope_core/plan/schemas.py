"""
计划数据结构：Plan / SubTask

状态机（SubTask 与 Plan 共用）：todo → in_progress → done | abandoned
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

SubTaskState = Literal["todo", "in_progress", "done", "abandoned"]
PlanState = Literal["todo", "in_progress", "done", "abandoned"]

FINISHED_STATES = ("done", "abandoned")

_STATE_MARKS = {
    "todo": "[ ]",
    "in_progress": "[-]",
    "done": "[x]",
    "abandoned": "[~]",
}


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class SubTask(BaseModel):
    """A subtask of a plan."""

    name: str = Field(description="The subtask name, should be concise, descriptive and not exceed 10 words.")
    description: str = Field(
        description=(
            "The subtask description, including the constraints, target and outcome to be "
            "achieved. The description should be clear, specific and concise."
        ),
    )
    expected_outcome: str = Field(
        description="The expected outcome of the subtask, which should be specific, concrete and measurable.",
    )
    outcome: str | None = Field(default=None, description="The actual outcome of the subtask.")
    state: SubTaskState = Field(default="todo", description="The state of the subtask.")
    created_at: str = Field(default_factory=_now, description="The time the subtask was created.")
    finished_at: str | None = Field(default=None, description="The time the subtask was finished.")

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, value: str | None) -> str:
        if value is None or not str(value).strip():
            return "Unnamed Subtask"
        return value

    def finish(self, outcome: str) -> None:
        self.state = "done"
        self.outcome = outcome
        self.finished_at = _now()

    def to_markdown(self, detailed: bool = False) -> str:
        line = f"- {_STATE_MARKS[self.state]} {self.name}"
        if not detailed:
            return line

        parts = [
            line,
            f"\t- Created At: {self.created_at}",
            f"\t- Description: {self.description}",
            f"\t- Expected Outcome: {self.expected_outcome}",
            f"\t- State: {self.state}",
        ]
        if self.state == "done":
            parts.append(f"\t- Finished At: {self.finished_at}")
            parts.append(f"\t- Actual Outcome: {self.outcome}")
        return "\n".join(parts)


class Plan(BaseModel):
    """计划：一组有序子任务"""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    description: str
    expected_outcome: str
    subtasks: list[SubTask] = Field(default_factory=list)
    state: PlanState = "todo"
    outcome: str | None = None
    created_at: str = Field(default_factory=_now)
    finished_at: str | None = None

    def refresh_state(self) -> None:
        """任一子任务进行中时，计划进入 in_progress"""
        if self.state in FINISHED_STATES:
            return
        if any(st.state == "in_progress" for st in self.subtasks):
            self.state = "in_progress"
        elif all(st.state == "todo" for st in self.subtasks):
            self.state = "todo"

    def finish(self, state: PlanState, outcome: str) -> None:
        self.state = state
        self.outcome = outcome
        self.finished_at = _now()

    def to_markdown(self, detailed: bool = False) -> str:
        subtasks = "\n".join(st.to_markdown(detailed) for st in self.subtasks)
        return "\n".join([
            f"# {self.name}",
            f"**Description**: {self.description}",
            f"**Expected Outcome**: {self.expected_outcome}",
            f"**State**: {self.state}",
            f"**Created At**: {self.created_at}",
            "## Subtasks",
            subtasks,
        ])
