"""
guarduim.domain

Typed records and the per-identity enforcement state machine.
"""
