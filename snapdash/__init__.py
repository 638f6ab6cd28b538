"""Snapshot caching and season aging for the retail reporting dashboard."""
