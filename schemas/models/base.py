"""
Shared base for MongoDB document models.

Documents keep their BSON ``_id`` as ``id``; PyObjectId lets pydantic accept an
ObjectId or its 24-hex string form and serialise it as a string in JSON mode.
"""

from __future__ import annotations

from typing import Any, Optional, Type, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler
from pydantic_core import core_schema

M = TypeVar("M", bound="MongoBaseModel")


class PyObjectId(ObjectId):
    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.to_string_ser_schema(),
        )

    @staticmethod
    def _coerce(value: Any) -> ObjectId:
        if isinstance(value, ObjectId):
            return value
        if isinstance(value, str) and ObjectId.is_valid(value):
            return ObjectId(value)
        raise ValueError(f"Invalid ObjectId: {value!r}")


class MongoBaseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    def to_mongo(self) -> dict:
        """Raw document for ``insert_one``.

        ``None`` fields are written explicitly so cleared secrets are visible
        as nulls; an unset ``_id`` is left for MongoDB to generate.
        """
        document = self.model_dump(by_alias=True)
        if document.get("_id") is None:
            document.pop("_id", None)
        return document

    @classmethod
    def from_mongo(cls: Type[M], document: Optional[dict]) -> Optional[M]:
        """Validate a raw document; ``None`` (no match) passes through."""
        if document is None:
            return None
        return cls.model_validate(document)
