"""
guarduim.controller

Control loop package.

Responsibilities:
- Reconciler: one evaluate-and-converge cycle for a single identity key.
- WorkQueue: deduplicating, per-key serialized queue with delayed and backoff re-adds.
- Controller: worker pool, watch pump and periodic resync.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Only `Controller` owns tasks; the reconciler is a plain object that can be driven
# directly from tests.
