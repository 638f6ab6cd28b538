"""Snapshot cache: key building, envelope codec and the Redis-backed store."""
