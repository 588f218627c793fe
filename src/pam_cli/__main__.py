"""
Entry point for running PAM CLI as a module.

This allows users to run the CLI using:
    python -m pam_cli [command] [options]
"""

from pam_cli.cli.app import app

if __name__ == "__main__":
    app()
