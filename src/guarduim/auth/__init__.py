"""
guarduim.auth

Authentication/authorization package for the operator API.

Responsibilities:
- JWT helpers and validation.
- FastAPI auth dependencies (Principal + role checks).
"""

# Package marker.
