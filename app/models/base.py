"""
Shared base for stored documents.
Documents are persisted with camelCase keys; Python code uses snake_case attributes.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DocumentModel(BaseModel):
    """Base model for documents read from and written to the store."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> dict:
        """Serialize to the stored (camelCase, JSON-safe) shape, omitting unset values."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
