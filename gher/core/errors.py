# ---------------------------------
# TYPED EXCEPTIONS
# ---------------------------------


class GherError(Exception):
    """Base class for failures the adapter turns into an error envelope.

    Every subclass carries the HTTP status code it maps to and the message
    that is safe to put on the wire.
    """

    status_code: int = 500
    public_message: str = 'internal error'

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)

    @property
    def message(self) -> str:
        return self.public_message


class BodyReadError(GherError):
    """Raised when the request body could not be read for a text input."""

    status_code = 500
    public_message = 'failed to read request'


class DecodeError(GherError):
    """Raised when the request body is not a valid document for the input type."""

    status_code = 400
    public_message = 'failed to parse request'


class EncodeError(GherError):
    """Raised when a structured output value cannot be serialized."""

    status_code = 500
    public_message = 'failed to encode response'


class HandlerError(GherError):
    """Raised by business functions to report a domain failure.

    Unlike the other errors, the message given here is sent to the client
    as-is.
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self._message = message

    @property
    def message(self) -> str:
        return self._message
