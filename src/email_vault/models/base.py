from __future__ import annotations

from datetime import datetime
from types import UnionType
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
    get_args,
    get_origin,
)

from pydantic import BaseModel


class DBSerializableModel(BaseModel):
    """
    Base Pydantic model for everything the service persists.

    Knows how to serialize itself for a document/row store and how to describe
    its own logical schema. The schema description is consumed offline by
    `email_vault.schema_generator`; nothing here touches the database.
    """

    # Logical collection / table name; subclasses must override
    collection_name: ClassVar[str]

    # Field used as the document `_id` / primary key; None means store-assigned
    primary_key: ClassVar[Optional[str]] = "id"

    # (field, direction) pairs; direction is 1 or -1 as in MongoDB
    indexes: ClassVar[List[Tuple[Tuple[str, int], ...]]] = []
    unique_indexes: ClassVar[List[Tuple[str, ...]]] = []

    def serialize_for_db(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    @classmethod
    def db_schema(cls) -> Dict[str, Any]:
        fields: Mapping[str, Any] = cls.model_fields

        properties: Dict[str, Any] = {}
        required: list[str] = []

        for name, field in fields.items():
            properties[name] = {
                "type": cls._map_type(field.annotation),
                "nullable": not field.is_required(),
                "description": field.description,
            }
            if field.is_required():
                required.append(name)

        return {
            "collection_name": cls.collection_name,
            "primary_key": cls.primary_key,
            "properties": properties,
            "required": required,
            "indexes": [list(map(list, idx)) for idx in cls.indexes],
            "unique": [list(u) for u in cls.unique_indexes],
        }

    @staticmethod
    def _map_type(annotation: Any) -> str:
        """Map a field annotation to a generic logical type name."""
        # Optional[X] -> X
        if get_origin(annotation) in (Union, UnionType):
            args = [a for a in get_args(annotation) if a is not type(None)]
            if len(args) == 1:
                annotation = args[0]

        if annotation is bool:
            return "boolean"
        if annotation is int:
            return "integer"
        if annotation is float:
            return "number"
        if annotation is str:
            return "string"
        if annotation is datetime:
            return "datetime"
        origin = getattr(annotation, "__origin__", None)
        if origin in (list, tuple, set):
            return "array"
        if origin is dict or annotation is dict:
            return "object"
        return getattr(annotation, "__name__", "object").lower()
