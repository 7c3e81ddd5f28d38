from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..models import Envelope


def envelope(message: str, data: Any = None, status_code: int = 200, headers=None) -> JSONResponse:
    """Wrap a payload in the {message, data} response shape."""
    body = Envelope(message=message, data={} if data is None else data)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def project(doc: dict[str, Any], select: dict[str, Any] | None) -> dict[str, Any]:
    """Apply a document-style projection to a serialized document."""
    if not select:
        return doc
    keep_id = bool(select.get("_id", 1))
    included = {k for k, v in select.items() if k != "_id" and v}
    if included:
        out = {k: v for k, v in doc.items() if k in included}
        if keep_id and "_id" in doc:
            out = {"_id": doc["_id"], **out}
        return out
    excluded = {k for k, v in select.items() if not v}
    return {k: v for k, v in doc.items() if k not in excluded}


def dump(schema: type[BaseModel], row, select: dict[str, Any] | None = None) -> dict[str, Any]:
    """ORM row -> wire dict (camelCase, `_id`), projected."""
    doc = schema.model_validate(row).model_dump(mode="json", by_alias=True)
    return project(doc, select)
