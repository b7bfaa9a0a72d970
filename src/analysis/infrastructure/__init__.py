"""
Analysis Infrastructure Layer
=============================

Infrastructure implementations for the inquiry analysis module.

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Session, ticket, message and context adapters
- External: Oracle and semantic search adapters
"""

from src.analysis.infrastructure.models import (
    AnalysisSessionModel,
    CustomerModel,
    EmployeeModel,
    TagModel,
    TicketMessageModel,
    TicketModel,
    TicketTagModel,
)
from src.analysis.infrastructure.repositories import (
    SQLAlchemyAnalysisSessionRepository,
    SQLAlchemyContextProvider,
    SQLAlchemyMessageGateway,
    SQLAlchemyTicketGateway,
)
from src.analysis.infrastructure.external import MilvusSemanticSearch, StructuredOracle

__all__ = [
    "AnalysisSessionModel",
    "CustomerModel",
    "EmployeeModel",
    "TagModel",
    "TicketMessageModel",
    "TicketModel",
    "TicketTagModel",
    "SQLAlchemyAnalysisSessionRepository",
    "SQLAlchemyContextProvider",
    "SQLAlchemyMessageGateway",
    "SQLAlchemyTicketGateway",
    "MilvusSemanticSearch",
    "StructuredOracle",
]
