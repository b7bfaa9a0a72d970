"""
Shared Kernel Module
====================

Shared infrastructure used by the analysis bounded context: logging,
metrics export and HTTP middleware.

DO NOT add pipeline business logic to the shared kernel.
"""

__version__ = "1.0.0"
