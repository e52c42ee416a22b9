"""Cross-cutting infrastructure: logging configuration and persistence."""
