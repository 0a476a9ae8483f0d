"""Building blocks for AI-assisted code review in CI/CD pipelines."""

__version__ = "0.1.0"

__all__ = ["platform", "runner", "security", "skill", "webhook"]