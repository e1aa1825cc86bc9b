"""
guarduim.enforcement

Access enforcement package: the deny role and per-identity bindings that implement a lock.
"""
