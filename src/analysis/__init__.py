"""
Analysis Module
===============

Bounded Context for AI-assisted handling of customer support inquiries.

Responsibilities:
- Screen inquiries for language and validity, open tickets for valid ones
- Retrieve organization documentation relevant to an inquiry
- Triage tickets: priority, tags, assignment need
- Post the first AI response to the ticket
- Re-evaluate conversations after each customer reply (close, hand off, continue)
"""

__version__ = "1.0.0"
