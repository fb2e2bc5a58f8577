"""Request schemas for the API."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

MIN_PROMPT_LENGTH = 5


class GenerateDeckRequest(BaseModel):
    """Request to generate a deck from a free-text prompt.

    Attributes:
        prompt: What the presentation is about
        user_id: Signed-in user, if any; anonymous callers are limited per IP
    """

    prompt: str = Field(..., description="Presentation request", max_length=10000)
    user_id: Optional[str] = Field(None, description="Signed-in user identifier", max_length=255)

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, value: str) -> str:
        value = value.strip()
        if len(value) < MIN_PROMPT_LENGTH:
            raise ValueError(f"Please provide a valid prompt (at least {MIN_PROMPT_LENGTH} characters)")
        return value

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class EditDeckRequest(BaseModel):
    """Natural-language edit to apply to a stored deck."""

    edit_request: str = Field(..., min_length=1, max_length=5000)

    @field_validator("edit_request")
    @classmethod
    def validate_edit_request(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Edit request cannot be empty")
        return value


class AttachImageRequest(BaseModel):
    """Image URL to place on one slide."""

    image_url: str = Field(..., min_length=1, max_length=2048)
