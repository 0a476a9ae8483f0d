"""URL and path safety checks and a Jenkins notification endpoint."""

__all__ = ["jenkins_webhook", "paths", "ssrf"]