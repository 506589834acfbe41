"""Small helpers shared across tidemark packages."""
