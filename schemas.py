from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from typing import Optional


class CreateSecureLinkRequest(BaseModel):
    # linkId / fileDataUri are the names older clients send
    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "linkId"))
    payload: str = Field(..., validation_alias=AliasChoices("payload", "fileDataUri"))
    file_name: str = Field(..., validation_alias=AliasChoices("fileName", "file_name"))


class CreateSecureLinkResponse(BaseModel):
    success: bool = True
    id: str
    url: str


class SecureLinkContents(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payload: str
    file_name: str = Field(..., alias="fileName")


class ErrorResponse(BaseModel):
    error: str
