"""Background jobs: dramatiq actors and their scheduler."""
