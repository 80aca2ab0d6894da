"""
Dialogue Errors

Exception taxonomy shared by the engine, the classifier, the session store
and the external collaborators.
"""


class DialogueError(Exception):
    """Base exception for dialogue orchestration failures."""
    pass


class ClassificationFailure(DialogueError):
    """Raised when the language classifier cannot interpret a message."""
    pass


class CollaboratorFailure(DialogueError):
    """Raised when the chat backend or path generator fails."""
    pass


class UnsupportedProviderError(CollaboratorFailure):
    """Raised when a chat provider is unknown, disabled or unconfigured."""

    def __init__(self, provider_id: str, reason: str = "is not available"):
        self.provider_id = provider_id
        super().__init__(f"Provider {provider_id!r} {reason}")


class StoreFailure(DialogueError):
    """Raised when no session storage tier could serve a request."""
    pass


class InvalidTransition(DialogueError):
    """Raised when a phase transition guard rejects a session."""
    pass
