from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DISPATCH_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class TaskType(str, Enum):
    AUDIT = "audittask"
    PRODUCE = "producetask"

    @classmethod
    def _missing_(cls, value: Any):
        # The settings UI speaks in short names
        aliases = {"audit": cls.AUDIT, "produce": cls.PRODUCE}
        if isinstance(value, str):
            return aliases.get(value.strip().lower())
        return None

    @property
    def commit_type(self) -> str:
        return f"{self.value}commit"

    @property
    def claim_field(self) -> str:
        """Request body key of the claim endpoint."""
        if self is TaskType.PRODUCE:
            return "clueIDs"
        return "taskIDs"


def parse_dispatch_time(value: Any) -> Optional[datetime]:
    """Parse a queue timestamp, returning None for empty or malformed values."""
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.strptime(value.strip(), DISPATCH_TIME_FORMAT)
    except ValueError:
        return None


class Clue(BaseModel):
    """One claimable item of the remote clue pool, as listed by the queue."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    task_id: int = Field(default=0, alias="taskID")
    clue_id: int = Field(default=0, alias="clueID")
    brief: str = ""
    step: int = 0
    subject: int = 0
    clue_type: int = Field(default=0, alias="clueType")
    state: int = 0
    step_name: str = Field(default="", alias="stepName")
    subject_name: str = Field(default="", alias="subjectName")
    clue_type_name: str = Field(default="", alias="clueTypeName")
    state_name: str = Field(default="", alias="stateName")
    create_time: Optional[datetime] = Field(default=None, alias="createTime")
    dispatch_time: Optional[datetime] = Field(default=None, alias="dispatchTime")

    @field_validator("create_time", "dispatch_time", mode="before")
    @classmethod
    def parse_queue_timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_dispatch_time(value)

    @field_validator("brief", "step_name", "subject_name", "clue_type_name", "state_name", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def searchable_text(self) -> str:
        return self.brief

    def claim_id(self, task_type: TaskType) -> int:
        if task_type is TaskType.PRODUCE:
            return self.clue_id
        return self.task_id


class ClueListPage(BaseModel):
    clues: list[Clue]
    total: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        if not self.clues:
            return False
        if self.total > 0:
            # The queue may serve fewer rows than requested; trust its total
            return self.page * len(self.clues) < self.total
        return len(self.clues) >= self.page_size


class ClaimOutcome(BaseModel):
    """Result of one claim attempt. ``error`` is set iff the claim failed."""

    claim_id: int
    success: bool
    error: Optional[str] = None
