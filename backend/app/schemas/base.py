"""
Base schema with camelCase wire names.

The web and native clients speak camelCase JSON; models are written in
snake_case and accept either spelling on input.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
