"""Common schemas used across multiple endpoints."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(CamelModel):
    """Response model for errors."""
    message: str
    error_key: str
    field: Optional[str] = Field(default=None, alias="property")
    additional_params: Dict[str, Any] = {}


class OkResponse(CamelModel):
    """Response model for simple acknowledgements."""
    ok: bool = True
    message: str


ERROR_RESPONSES = {
    status_code: {"model": ErrorResponse}
    for status_code in (400, 401, 403, 404, 409, 415, 429)
}
