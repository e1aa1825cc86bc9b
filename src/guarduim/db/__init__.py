"""
guarduim.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models and engine/session setup backing `guarduim.store.sql`.
"""

# Package marker.
