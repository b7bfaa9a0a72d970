"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

Stages raise these; the HTTP layer maps each family to a status code and the
pipeline records the failure on the analysis session.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class SessionStateException(DomainException):
    """Raised when a stage is asked to act on a session in the wrong state."""

    def __init__(self, session_id: str, status: str, message: str):
        self.session_id = session_id
        self.status = status
        super().__init__(
            f"Session {session_id} ({status}): {message}",
            {"session_id": session_id, "status": status}
        )


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ConsistencyException(ValidationException):
    """Identifiers supplied to a stage disagree with the stored session or ticket."""


class AuthenticationException(ApplicationException):
    """Missing credentials."""


class AuthorizationException(ApplicationException):
    """Invalid credentials or cross-tenant access."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for oracle call or structured-output decode failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class VectorStoreException(ExternalServiceException):
    """Exception for vector store failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Vector Store", message, details)
