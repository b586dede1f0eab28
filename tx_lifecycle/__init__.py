"""Transaction lifecycle orchestration: definitions, side effects, confirmation watching."""

__version__ = "1.0.0"
