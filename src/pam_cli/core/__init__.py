"""
Core components for PAM CLI.

This package provides the error taxonomy, the PAM API client, session
management and the command dispatcher.
"""

__all__ = ["client", "commands", "dispatcher", "errors", "export", "session"]
