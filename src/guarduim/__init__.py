"""
guarduim

Top-level package for the guarduim identity lockout controller.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"


# --- Module Notes -----------------------------------------------------------
# Keep this file minimal; importing the package must not start tasks or open connections.
