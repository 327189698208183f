"""Core infrastructure: configuration, storage, logging, scheduling."""
