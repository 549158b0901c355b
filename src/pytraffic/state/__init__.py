"""State layer.

This package is the single place where pulled and pushed rows are merged
into the local view: the current sample, the alert log and the active
timing configuration, plus the pure signals derived from them.
"""
