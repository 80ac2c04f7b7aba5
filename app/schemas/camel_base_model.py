import uuid
from datetime import datetime, date
from enum import Enum
from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class CamelCaseBaseModel(BaseModel):
    """
    Base for every request and response body.

    Clients send and receive camelCase keys (``fileId``, ``courseSections``);
    Python code uses the snake_case attribute names. Dumping with
    ``by_alias=True`` produces the wire shape, and the serializer below turns
    UUIDs, enums and datetimes into JSON-friendly strings at any depth.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*")
    def serialize_any(self, value):
        if isinstance(value, uuid.UUID):
            return str(value)

        # Nested bodies keep their camelCase keys
        if isinstance(value, BaseModel):
            return value.model_dump(by_alias=True)

        if isinstance(value, Enum):
            return value.value

        # datetime is a subclass of date
        if isinstance(value, (datetime, date)):
            return value.isoformat()

        if isinstance(value, (list, tuple, set)):
            return [self.serialize_any(item) for item in value]

        if isinstance(value, dict):
            return {key: self.serialize_any(val) for key, val in value.items()}

        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")

        if value is None or isinstance(value, (str, int, float, bool)):
            return value

        return str(value)
