"""Base model for persisted records."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Snake_case attributes, camelCase on the wire and in storage."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_record(self) -> dict:
        """Dump in the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True)
