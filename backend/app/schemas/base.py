"""Shared base model for request and response bodies.

The web client speaks camelCase JSON (``firstName``, ``familyCode``) while
the Python side keeps snake_case attribute names.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
