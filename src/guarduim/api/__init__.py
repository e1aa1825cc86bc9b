"""
guarduim.api

Operator HTTP API package (FastAPI).

Responsibilities:
- App factory and composition root (`app`).
- Routers for health probes and identity management.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Keep package import side-effect free; `create_app` is the only place that wires the controller.
