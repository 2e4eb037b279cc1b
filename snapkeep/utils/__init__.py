"""Configuration and startup helpers for snapkeep."""
