"""Error taxonomy shared by suppliers, the service layer and the HTTP API."""


class SwapError(Exception):
    """Base class for errors that map onto an HTTP status."""
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(SwapError):
    """Client supplied something we refuse before touching a supplier."""
    status_code = 400
    public_message = "Invalid request"


class NotFoundError(SwapError):
    """Unknown station, battery or unconfigured id."""
    status_code = 404
    public_message = "Not found"


class UpstreamError(SwapError):
    """A supplier API failed or returned something we cannot use."""
    status_code = 502
    public_message = "Upstream supplier error"

    def __init__(self, message: str | None = None, *, supplier: str | None = None) -> None:
        super().__init__(message)
        self.supplier = supplier


class AuthenticationError(UpstreamError):
    """The token-requiring supplier rejected our credentials or token."""
    public_message = "Upstream supplier authentication failed"
