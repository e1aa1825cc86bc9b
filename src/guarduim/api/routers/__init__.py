"""
guarduim.api.routers

HTTP routers for the operator API.
"""
