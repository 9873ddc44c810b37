from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from autoclaim.main.exceptions import InvalidConfigException

STEP_FILTER_ID = "step"
SUBJECT_FILTER_ID = "subject"
CLUE_TYPE_FILTER_ID = "clueType"


class LabelOption(BaseModel):
    id: int
    name: str


class LabelFilter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    kind: str = Field(default="", alias="type")
    options: list[LabelOption] = Field(default_factory=list, alias="list")

    def find_option(self, name: str) -> Optional[LabelOption]:
        wanted = name.strip()
        for option in self.options:
            if option.name == wanted:
                return option
        return None


class TaskLabelData(BaseModel):
    filter: list[LabelFilter] = Field(default_factory=list)


class TaskLabelResponse(BaseModel):
    """Filter taxonomy (grade, subject, clue type) of one task type."""

    errno: int = 0
    errmsg: str = ""
    data: TaskLabelData = Field(default_factory=TaskLabelData)

    def get_filter(self, filter_id: str) -> Optional[LabelFilter]:
        for label_filter in self.data.filter:
            if label_filter.id == filter_id:
                return label_filter
        return None

    def resolve_filter_ids(
        self,
        step: Optional[str] = None,
        subject: Optional[str] = None,
        clue_type: Optional[str] = None,
    ) -> dict[str, int]:
        """Resolve display names to the numeric ids the list endpoint expects.

        Unset names resolve to 0 ("any"). Unknown names raise
        InvalidConfigException listing every name that did not resolve.
        """
        wanted = {
            "step_id": (STEP_FILTER_ID, step),
            "subject_id": (SUBJECT_FILTER_ID, subject),
            "clue_type_id": (CLUE_TYPE_FILTER_ID, clue_type),
        }

        resolved: dict[str, int] = {}
        unknown: list[str] = []
        for field_name, (filter_id, name) in wanted.items():
            if not name:
                resolved[field_name] = 0
                continue

            label_filter = self.get_filter(filter_id)
            option = label_filter.find_option(name) if label_filter else None
            if option is None:
                unknown.append(field_name)
                continue
            resolved[field_name] = option.id

        if unknown:
            raise InvalidConfigException(
                unknown, f"Unknown filter labels for: {', '.join(unknown)}"
            )

        return resolved


class UserInfoData(BaseModel):
    role_links: list[str] = Field(default_factory=list, alias="roleLinks")
    role_names: list[str] = Field(default_factory=list, alias="roleNames")
    user_name: str = Field(default="", alias="userName")
    avatar: str = ""

    model_config = ConfigDict(populate_by_name=True)


class UserInfoResponse(BaseModel):
    errno: int = 0
    errmsg: str = ""
    data: UserInfoData = Field(default_factory=UserInfoData)
