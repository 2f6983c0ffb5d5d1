from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime

from agrimarket.models.enums import to_wire

class BaseSchema(BaseModel):
    # snake_case in Python, camelCase on the wire
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

class TimestampSchema(BaseSchema):
    created_at: datetime
    updated_at: datetime

class StatusSchema(BaseSchema):
    """Views carrying a storage enum expose it lower-cased."""

    @field_validator("status", "role", mode="before", check_fields=False)
    @classmethod
    def lower_case_enum(cls, value):
        return to_wire(value)
