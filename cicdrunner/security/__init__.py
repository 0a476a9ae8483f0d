"""Prompt-injection screening and sandboxed tool execution."""

__all__ = ["injection", "sandbox"]