"""
guarduim.observability

Observability package.

Responsibilities:
- Structured logging configuration.
- Context propagation (identity key, request id) for consistent log enrichment.
"""

# Package marker.
