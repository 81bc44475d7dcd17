from datetime import datetime, date
from enum import Enum
from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class CamelCaseBaseModel(BaseModel):
    """
    Base model with camelCase field aliases and automatic serialization.

    - Input: camelCase keys from the client are converted to snake_case for validation.
    - Internal: snake_case fields are used throughout the Python codebase.
    - Output: call `model_dump(by_alias=True)` to serialize fields back to camelCase.
    - Auto-serialization: Enums and datetimes are converted to strings.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*")
    def serialize_any(self, value):
        """Global serializer for enum and date values; everything else passes through"""
        if isinstance(value, Enum):
            return value.value

        # datetime must come before date, it is a subclass
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, date):
            return value.isoformat()

        if isinstance(value, (list, tuple, set)):
            return [self.serialize_any(item) for item in value]
        if isinstance(value, dict):
            return {key: self.serialize_any(val) for key, val in value.items()}

        return value
