# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and storage mapping.
"""

from datetime import datetime
from typing import Any, Dict
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


class BaseEntity(BaseModel):
    """Base entity with common fields for all stored records."""
    
    model_config = ConfigDict(
        # Stored documents use camelCase keys
        alias_generator=to_camel,
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True,
        # Defaults go through validation so enum defaults are stored as values
        validate_default=True
    )
    
    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    
    def to_document(self) -> Dict[str, Any]:
        """Convert entity to a MongoDB document keyed by _id."""
        document = self.model_dump(by_alias=True)
        document["_id"] = document.pop("id")
        return document
    
    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        """Build entity from a stored MongoDB document."""
        data = dict(document)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)
    
    def to_response(self) -> Dict[str, Any]:
        """Serialize entity for API responses."""
        return self.model_dump(mode="json", by_alias=True)
