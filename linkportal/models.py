from typing import Optional, Type, TypeVar, Union

from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidInput, PayloadTooLarge

BodyT = TypeVar("BodyT", bound=BaseModel)


class ClaimIn(BaseModel):
    id: Optional[str] = None


class PinIn(BaseModel):
    pin: Optional[Union[str, int]] = None

    @field_validator("pin")
    @classmethod
    def pin_as_text(cls, v):
        # numeric pins typed into a JSON client arrive as numbers
        return None if v is None else str(v)


class FolderIn(BaseModel):
    title: Optional[str] = None


class IdIn(BaseModel):
    id: Optional[str] = None


class LinkIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    folder_id: Optional[str] = Field(default=None, alias="folderId")
    name: Optional[str] = None
    url: Optional[str] = None


async def read_body(request: Request, model: Type[BodyT]) -> BodyT:
    """
    Read and validate a JSON body, counting the bytes actually received so
    chunked uploads without Content-Length hit the same limit.
    An empty body yields the model's defaults.
    """
    limit = request.app.state.settings.max_body_bytes
    raw = bytearray()
    async for chunk in request.stream():
        raw += chunk
        if len(raw) > limit:
            raise PayloadTooLarge()
    if not raw.strip():
        return model()
    try:
        return model.model_validate_json(bytes(raw))
    except ValidationError:
        raise InvalidInput("invalid request")
