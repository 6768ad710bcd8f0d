"""Custom exceptions for Mail Emulator."""


class MailEmulatorError(Exception):
    """Base exception for all Mail Emulator errors."""


class ConfigurationError(MailEmulatorError):
    """Exception raised for fatal configuration errors (bad paths, bad parameters)."""


class OutputWriteError(MailEmulatorError):
    """Exception raised when the output directory cannot be written."""


class MessageParseError(MailEmulatorError):
    """Exception raised when a single raw record cannot be parsed.

    The transform pipeline catches this, counts the record as skipped and
    moves on; it never aborts a run.
    """

    def __init__(self, reason: str, source_path: str | None = None) -> None:
        super().__init__(f"{reason} ({source_path})" if source_path else reason)
        self.reason = reason
        self.source_path = source_path


class ReplayError(MailEmulatorError):
    """Base exception for errors surfaced by the replay service as HTTP responses."""

    status_code = 500
    status = "INTERNAL"
    reason = "backendError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ReplayError):
    """Exception raised when a requested entity does not exist."""

    status_code = 404
    status = "NOT_FOUND"
    reason = "notFound"


class BadRequestError(ReplayError):
    """Exception raised for malformed request parameters."""

    status_code = 400
    status = "INVALID_ARGUMENT"
    reason = "invalidArgument"


class DatasetNotReadyError(ReplayError):
    """Exception raised when a request arrives before the dataset has loaded."""

    status_code = 503
    status = "UNAVAILABLE"
    reason = "backendNotReady"
