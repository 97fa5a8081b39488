"""Counter store adapters.

Time-windowed integer counters keyed by rate-limit key. The in-memory store
backs the daily API key quota; a shared store (e.g. Redis) can replace it
behind the same interface.
"""
