"""
PAM CLI - command-line client for the PAM Chief of Staff service.

This package provides a command-line interface for searching PAM's memory,
invoking its skills, managing its context bundle, generating reflections and
chatting with the assistant.
"""

__version__ = "0.1.0"
__author__ = "AI Garage"
__license__ = "Apache-2.0"

from typing import Final

# Package metadata
VERSION: Final[str] = __version__
PACKAGE_NAME: Final[str] = "pam-cli"
USER_AGENT: Final[str] = f"{PACKAGE_NAME}/{VERSION}"

# Re-export commonly used items
__all__ = [
    "__version__",
    "VERSION",
    "PACKAGE_NAME",
    "USER_AGENT",
]
