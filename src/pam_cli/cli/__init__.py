"""
CLI package for PAM CLI.

This package contains the Typer application, Rich rendering helpers and the
interactive chat loop.
"""
