"""Exception taxonomy for the chat core."""


class NextChatError(Exception):
    """Base class for all nextchat errors."""

    def __init__(self, message: str = "nextchat error"):
        super().__init__(message)
        self.message = message


class ConfigurationError(NextChatError):
    """A required API setting is missing; no request was sent."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing API settings: {', '.join(missing)}")


class HttpError(NextChatError):
    """The completion endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        return f"HTTP {self.status_code}: {self.message}"


class NetworkError(NextChatError):
    """Transport-level failure while sending the request or reading the stream."""


class StreamParseError(NextChatError):
    """A single stream line could not be parsed. Recovered by skipping the line."""


class PersistenceError(NextChatError):
    """Stored state is corrupt or unreadable."""


class FormatError(NextChatError):
    """Imported data is not a conversation array."""


class TurnInProgressError(NextChatError):
    """A turn is already streaming into the target conversation."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"A reply is still streaming into conversation {conversation_id}")
