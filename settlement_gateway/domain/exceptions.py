"""Domain-specific exceptions"""

from typing import List


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Payment details failed validation; recoverable by re-prompting"""

    def __init__(self, violations: List["FieldError"]):  # noqa: F821
        self.violations = list(violations)
        fields = ", ".join(v.field for v in self.violations)
        super().__init__(f"Invalid payment details: {fields}")


class ConfigurationError(DomainException):
    """Discount configuration is missing or unusable (message must not carry values)"""

    pass


class ExternalCollaboratorError(DomainException):
    """Assistant reply unavailable, failed, or timed out"""

    pass


class UnrecognizedStepError(DomainException):
    """Assistant reply did not name any conversation step"""

    pass


class SessionNotFoundError(DomainException):
    """No conversation state stored for the session id"""

    pass


class SessionBusyError(DomainException):
    """Another turn for the same session is still being processed"""

    pass
