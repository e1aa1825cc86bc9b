"""
guarduim.store

Storage boundary for MonitoredIdentity records and access objects.

Responsibilities:
- Protocols (`base`), watch fan-out (`events`), and the memory / SQL implementations.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The controller depends on the protocols in `store.base`, never on a concrete store.
