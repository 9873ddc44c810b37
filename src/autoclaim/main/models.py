from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models exchanged with the settings UI.

    Serialized in camelCase; accepts both camelCase and snake_case input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GeneralError(BaseModel):
    message: str
    autoclaim_error_code: Optional[int] = None


class VersionResponse(BaseModel):
    version: str
