"""Domain-specific realtime payload builders.

These modules should contain *publish* helpers only (build payload + emit).
They must not define Socket.IO server instances or connection handlers.
"""
