"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every bounded context:
- Structured JSON logging
- Grafana OTLP metrics export
"""
