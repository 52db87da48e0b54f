from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import orjson
from bson import ObjectId
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, field_serializer


class MongoModel(BaseModel):
    """Base for documents read back from Mongo; ObjectIds leave as strings."""
    model_config = {"populate_by_name": True}

    @field_serializer("*", when_used="json", check_fields=False)
    def serialize_objectid(self, value):
        return str(value) if isinstance(value, ObjectId) else value


def bson_default(obj: Any) -> Any:
    """Walk a response payload and turn BSON values into JSON-safe ones."""
    if isinstance(obj, BaseModel):
        return bson_default(obj.model_dump(mode="python"))
    if isinstance(obj, dict):
        return {str(k): bson_default(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [bson_default(v) for v in obj]
    if isinstance(obj, ObjectId):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj


class MongoORJSONResponse(ORJSONResponse):
    """Default response class; tolerates raw Mongo documents in handler results."""

    def render(self, content: Any) -> bytes:
        return orjson.dumps(bson_default(content))
