"""Core package: application wiring, scheduling and logging."""
