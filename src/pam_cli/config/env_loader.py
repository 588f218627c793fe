"""
.env file loading for PAM CLI.

Variables from the first .env file found are added to the process
environment before configuration is resolved. Variables that are already set
are never overridden.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional
import logging

from dotenv import dotenv_values, load_dotenv

logger = logging.getLogger(__name__)


class EnvFileLoader:
    """
    .env file loader with hierarchical search.

    Search order (stops at first file found):
    1. Current directory: .pam/.env -> .env
    2. Parent directories (up to git root or home): .pam/.env -> .env
    3. Home directory: ~/.pam/.env -> ~/.env
    """

    CONFIG_DIR_NAME = ".pam"
    ENV_FILE_NAME = ".env"

    def __init__(self, working_directory: Optional[Path] = None):
        """Initialize env file loader.

        Args:
            working_directory: Starting directory for search
        """
        self.working_directory = Path(working_directory or Path.cwd()).resolve()
        self._loaded_file: Optional[Path] = None
        self._loaded_vars: Dict[str, str] = {}

    def load_env_file(self) -> Optional[Path]:
        """Load environment variables from the first .env file found.

        Returns:
            Path to loaded .env file or None if none found
        """
        for env_file_path in self.get_search_paths():
            if env_file_path.is_file():
                break
        else:
            logger.debug("No .env file found in search path")
            return None

        load_dotenv(env_file_path, override=False)
        self._loaded_file = env_file_path
        self._loaded_vars = {
            key: value
            for key, value in dotenv_values(env_file_path).items()
            if value is not None and key.startswith("PAM_")
        }

        logger.debug(f"Loaded environment variables from: {env_file_path}")
        return env_file_path

    def get_loaded_file(self) -> Optional[Path]:
        """Path to the loaded .env file, if any."""
        return self._loaded_file

    def get_loaded_vars(self) -> Dict[str, str]:
        """PAM_* variables defined in the loaded .env file."""
        return self._loaded_vars.copy()

    def get_search_paths(self) -> List[Path]:
        """Get list of all paths that would be searched for .env files.

        Returns:
            List of search paths in order
        """
        search_paths = []
        current_dir = self.working_directory

        while current_dir != current_dir.parent:
            search_paths.append(current_dir / self.CONFIG_DIR_NAME / self.ENV_FILE_NAME)
            search_paths.append(current_dir / self.ENV_FILE_NAME)

            if self._should_stop_search(current_dir):
                break

            current_dir = current_dir.parent

        home_dir = Path.home()
        for candidate in (home_dir / self.CONFIG_DIR_NAME / self.ENV_FILE_NAME, home_dir / self.ENV_FILE_NAME):
            if candidate not in search_paths:
                search_paths.append(candidate)

        return search_paths

    def _should_stop_search(self, directory: Path) -> bool:
        # Stop at Git repository root or the home directory
        return (directory / ".git").exists() or directory == Path.home()


def load_env_with_hierarchy(working_directory: Optional[Path] = None) -> Optional[Path]:
    """Convenience function to load .env file with hierarchical search.

    Args:
        working_directory: Starting directory for search

    Returns:
        Path to loaded .env file or None
    """
    if os.environ.get("PAM_NO_DOTENV"):
        return None
    loader = EnvFileLoader(working_directory)
    return loader.load_env_file()
