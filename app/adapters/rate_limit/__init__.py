"""Rate limiting adapters.

Admission limiters keyed by caller identity. The in-memory fixed-window
limiter backs the per-address throttle that runs ahead of the pipeline.
"""
