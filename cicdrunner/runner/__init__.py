"""Review data models, result caching and review helpers."""

__all__ = ["cache", "models", "review"]