from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PasswordFields(StrictModel):
    # Mutable fields of a record, plaintext secret included.
    title: str = Field(min_length=1)
    username: str = ""
    password: str = Field(min_length=1)
    website: str = ""
    notes: str = ""


class PasswordRecord(StrictModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str
    title: str
    username: str
    password: str
    website: str = ""
    notes: str = ""
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")


class GenerationOptions(StrictModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    # Bounds are enforced by the generator (RangeError), not by the model.
    length: StrictInt
    include_uppercase: StrictBool = Field(default=False, alias="includeUppercase")
    include_lowercase: StrictBool = Field(default=False, alias="includeLowercase")
    include_numbers: StrictBool = Field(default=False, alias="includeNumbers")
    include_symbols: StrictBool = Field(default=False, alias="includeSymbols")


class CreatePasswordResponse(StrictModel):
    success: bool = True
    id: str


class SuccessResponse(StrictModel):
    success: bool = True


class GeneratedPasswordResponse(StrictModel):
    password: str
