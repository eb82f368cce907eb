"""Dr. Scale backend: call billing guard and team invites."""

__version__ = "1.0.0"
