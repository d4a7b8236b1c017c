"""Client-side error taxonomy."""


class TriviaClientError(Exception):
    pass


class ConnectivityError(TriviaClientError):
    """The transport could not establish a connection. Fatal to the page."""


class NotReadyError(TriviaClientError):
    """A bounded wait ran out. Callers continue in a degraded state."""


class ValidationError(TriviaClientError):
    """Illegal local input. Never sent to the server."""


class ServerRejection(TriviaClientError):
    """The server answered a command with an ``error`` event."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
