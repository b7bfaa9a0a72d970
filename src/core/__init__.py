"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from src.core.exceptions import (
    ApplicationException,
    DomainException,
    SessionStateException,
    RepositoryException,
    ValidationException,
    ConsistencyException,
    AuthenticationException,
    AuthorizationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
    VectorStoreException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "SessionStateException",
    "RepositoryException",
    "ValidationException",
    "ConsistencyException",
    "AuthenticationException",
    "AuthorizationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
    "VectorStoreException",
]
