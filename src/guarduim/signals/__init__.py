"""
guarduim.signals

Failure signal sources: where the per-username denied-authentication count comes from.
"""
