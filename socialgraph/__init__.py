"""Social graph and denormalized-counter consistency service."""

__version__ = "1.0.0"
