"""
Analysis Interfaces Layer
=========================

Interface adapters (controllers) for the inquiry analysis module.

Contains:
- Controllers: FastAPI route handlers
"""

from src.analysis.interfaces.controllers import analysis_router

__all__ = ["analysis_router"]
