"""File handling, retry policies and SSE streaming for Claude API clients."""

__version__ = "0.1.1"

__all__ = ["errors", "files", "retry", "streaming"]