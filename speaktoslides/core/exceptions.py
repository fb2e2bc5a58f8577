"""Error taxonomy shared by the compiler, the conversation engine and the API.

Every error carries a ``user_message`` that is safe to show to an end user:
short, actionable, and free of internal details.
"""


class SpeakToSlidesError(Exception):
    """Base exception for application errors."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", user_message: str | None = None):
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class GenerationFormatError(SpeakToSlidesError):
    """Raised when the model returns non-JSON or structurally invalid content."""

    user_message = "The AI returned something I couldn't read. Please try again."


class RateLimitedError(SpeakToSlidesError):
    """Raised when the primary model and its fallback are both rate limited."""

    user_message = "The AI is busy right now. Please try again in a moment."


class LLMInvocationError(SpeakToSlidesError):
    """Raised when a model call fails for any reason other than rate limiting."""

    user_message = "The AI service failed to respond. Please try again."


class CapabilityUnavailableError(SpeakToSlidesError):
    """Raised when a feature is switched off because its credential is missing."""

    user_message = "This feature is not available right now."


class NotFoundError(SpeakToSlidesError):
    """Raised when a referenced deck or conversation does not exist."""

    user_message = "This deck wasn't found."


class ValidationError(SpeakToSlidesError):
    """Raised when caller input is malformed. Checked before any external call."""

    user_message = "That request doesn't look right. Please check it and try again."


class BuildInProgressError(SpeakToSlidesError):
    """Raised when a build is already running for a conversation."""

    user_message = "Your deck is already being built. Hang tight!"
