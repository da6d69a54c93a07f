"""Custom exceptions for mailstore."""


class MailstoreError(Exception):
    """Base exception for all mailstore errors."""


class OpenFailure(MailstoreError):
    """Exception raised when a message file cannot be opened."""

    def __init__(self, path: str, reason: str, missing: bool) -> None:
        self.path = path
        self.reason = reason
        self.missing = missing
        if missing:
            text = f"Failed to open the message file - not found: {path} {reason}"
        else:
            text = f"Failed to open the existing message file: {path} {reason}"
        super().__init__(text)


class ParseFailure(MailstoreError):
    """Exception raised when MIME construction fails even after recovery."""


class ProxyFailure(MailstoreError):
    """Exception raised when the proxy channel returns no usable response."""


class RenameFailure(MailstoreError):
    """Exception raised when a flag-driven rename does not complete."""


class AttachmentError(MailstoreError):
    """Exception raised when an attachment rebuild has to be aborted."""


class ConfigurationError(MailstoreError):
    """Exception raised for configuration related errors."""
