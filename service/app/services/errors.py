"""
Error kinds raised by the conversation pipeline.

Request-level problems (missing identity, malformed bodies) are reported by
the API layer as HTTPException; everything here is raised below it.
"""


class CompletionError(Exception):
    """Base class for chat-completion failures."""


class RateLimited(CompletionError):
    """Provider rejected the request with a rate limit (429)."""

    def __init__(self, message: str = "Rate limited by completion provider"):
        super().__init__(message)


class ProviderError(CompletionError):
    """Provider reported an error or could not be reached."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EmptyCompletion(CompletionError):
    """Provider answered without a usable completion choice."""

    def __init__(self, message: str = "No response from AI model"):
        super().__init__(message)


class StorageError(Exception):
    """Session could not be read or written."""


class ValidationError(Exception):
    """Input refers to something that does not exist or is malformed."""


class UnknownPersona(ValidationError):
    def __init__(self, persona_id: str):
        super().__init__(f"Unknown persona: {persona_id}")
        self.persona_id = persona_id


class ChannelClosed(Exception):
    """Delivery channel can no longer reach the user."""
