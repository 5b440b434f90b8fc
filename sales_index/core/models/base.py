"""
Shared base for models that are persisted as documents.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DocumentModel(BaseModel):
    """Snake_case in Python, camelCase in the store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible document body."""
        return self.model_dump(by_alias=True, mode="json")
