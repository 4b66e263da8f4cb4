"""Client-side orchestration for the ms-manager firmware dashboard."""

__version__ = "0.1.0"
