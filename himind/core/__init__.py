"""Configuration, store connection, tracing and logging helpers."""
