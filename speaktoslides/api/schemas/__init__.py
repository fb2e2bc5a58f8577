"""API request and response schemas."""

from speaktoslides.api.schemas.requests import (
    AttachImageRequest,
    EditDeckRequest,
    GenerateDeckRequest,
)
from speaktoslides.api.schemas.responses import (
    DeckResponse,
    DeckUpdateResponse,
    GenerateDeckResponse,
)

__all__ = [
    "AttachImageRequest",
    "DeckResponse",
    "DeckUpdateResponse",
    "EditDeckRequest",
    "GenerateDeckRequest",
    "GenerateDeckResponse",
]
