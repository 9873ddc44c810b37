from datetime import datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from autoclaim.clue_queue.clue import TaskType
from autoclaim.clue_queue.clue_queue_client import ClueFilterIds
from autoclaim.main.config import get_settings
from autoclaim.main.exceptions import InvalidConfigException


def _normalize_timestamp(value: Any) -> Any:
    # "2024-01-01 08:00:00" as sent by the UI, ISO-8601 otherwise
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        return value.replace(" ", "T", 1)
    return value


class PublishWindow(BaseModel):
    """Inclusive publish-time window. Either bound may be open."""

    model_config = ConfigDict(frozen=True)

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_bound(cls, value: Any) -> Any:
        return _normalize_timestamp(value)

    @field_validator("start", "end")
    @classmethod
    def to_queue_local_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Clue timestamps are naive queue-local times; compare like with like
        if value is None or value.tzinfo is None:
            return value
        queue_zone = ZoneInfo(get_settings().queue_timezone)
        return value.astimezone(queue_zone).replace(tzinfo=None)

    @model_validator(mode="after")
    def check_order(self):
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("publish window start is after its end")
        return self

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


class SessionConfig(BaseModel):
    """Immutable configuration of one auto-claim session."""

    model_config = ConfigDict(frozen=True)

    task_type: TaskType = TaskType.AUDIT
    step_id: int = Field(default=0, ge=0)
    subject_id: int = Field(default=0, ge=0)
    clue_type_id: int = Field(default=0, ge=0)

    claim_limit: int = Field(gt=0)
    poll_interval: timedelta
    max_pages: int = Field(default=0, ge=0)  # 0 = unbounded
    concurrent_claims: int = Field(default=1, ge=1)

    include_keywords: tuple[str, ...] = ()
    exclude_keywords: tuple[str, ...] = ()
    publish_window: Optional[PublishWindow] = None

    credential: SecretStr

    @field_validator("task_type", mode="before")
    @classmethod
    def accept_short_task_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return TaskType(value)
        return value

    @field_validator("include_keywords", "exclude_keywords", mode="before")
    @classmethod
    def drop_blank_keywords(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        return tuple(keyword.strip() for keyword in value if keyword and keyword.strip())

    @field_validator("poll_interval")
    @classmethod
    def interval_must_be_positive(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("poll interval must be positive")
        return value

    @field_validator("credential")
    @classmethod
    def credential_required(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("credential is required")
        return value

    @field_validator("publish_window")
    @classmethod
    def drop_open_window(cls, value: Optional[PublishWindow]) -> Optional[PublishWindow]:
        if value is not None and value.is_open:
            return None
        return value

    @classmethod
    def create(cls, **values: Any) -> "SessionConfig":
        """Validate ``values``, raising InvalidConfigException on any violation."""
        try:
            return cls(**values)
        except ValidationError as exc:
            fields = []
            for error in exc.errors():
                field = str(error["loc"][0]) if error["loc"] else "config"
                if field not in fields:
                    fields.append(field)
            details = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}"
                for error in exc.errors()
            )
            raise InvalidConfigException(fields, f"Invalid session config: {details}") from exc

    @property
    def filter_ids(self) -> ClueFilterIds:
        return ClueFilterIds(
            step_id=self.step_id,
            subject_id=self.subject_id,
            clue_type_id=self.clue_type_id,
        )

    @property
    def time_window_active(self) -> bool:
        return self.task_type is TaskType.PRODUCE and self.publish_window is not None

    def describe(self) -> dict[str, Any]:
        """Loggable summary; never includes the credential."""
        return {
            "task_type": self.task_type.value,
            "claim_limit": self.claim_limit,
            "poll_interval_seconds": self.poll_interval.total_seconds(),
            "max_pages": self.max_pages,
            "concurrent_claims": self.concurrent_claims,
            "step_id": self.step_id,
            "subject_id": self.subject_id,
            "clue_type_id": self.clue_type_id,
            "include_keywords": list(self.include_keywords),
            "exclude_keywords": list(self.exclude_keywords),
            "time_window": self.time_window_active,
        }
