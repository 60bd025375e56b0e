"""Errors raised by the chat session controller and its collaborators."""


class ChatError(Exception):
    """Base exception for chat session errors."""

    pass


class TransportError(ChatError):
    """A remote channel call failed (network, IPC or backend fault)."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
        retriable: bool = False,
    ):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.retriable = retriable


class MissingCredentialError(ChatError):
    """No usable credential is available for sending messages."""

    def __init__(self, key: str, message: str | None = None):
        super().__init__(
            message
            or f"API key '{key}' is missing. Please set it in Settings."
        )
        self.key = key


class SendInProgressError(ChatError):
    """A send is already in flight for this conversation."""

    def __init__(self, conversation_id: int):
        super().__init__(
            f"A message is already being sent to conversation {conversation_id}"
        )
        self.conversation_id = conversation_id


class StaleResultDiscarded(ChatError):
    """A result arrived after its target context changed and was not applied."""

    def __init__(self, conversation_id: int):
        super().__init__(f"Discarded stale result for conversation {conversation_id}")
        self.conversation_id = conversation_id
