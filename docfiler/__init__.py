"""DocFiler - Application configuration and console output."""

import getpass
import os
from typing import Any, Optional, TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    import argparse

__version__ = "0.1.0"

DEFAULT_DB_PATH = os.path.join(os.path.expanduser("~"), ".docfiler", "metadata.db")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _default_user() -> str:
    """$USER@localhost; "docfiler@localhost" when the login name is unknown."""
    try:
        return f"{getpass.getuser()}@localhost"
    except (KeyError, OSError):
        return "docfiler@localhost"


class DocFiler:
    """Central configuration and console output for DocFiler.

    Holds settings only. Storage drivers and the metadata store are built by
    the entry point and handed to the workflow objects explicitly.
    """

    # Storage / metadata locations
    docstore_uri: Optional[str] = None
    metadata_db: str = DEFAULT_DB_PATH
    token_file: str = "gdrive_token.json"
    access_token: Optional[str] = None

    # Caller identity recorded on uploads
    user_email: Optional[str] = None
    user_name: Optional[str] = None

    # Tuning
    max_tree_depth: int = 5
    provision_workers: int = 4
    request_timeout: int = 300

    # Output
    quiet: bool = False
    _console: Console = Console(highlight=False)

    @classmethod
    def configure(cls, args: Optional["argparse.Namespace"] = None) -> None:
        """Load settings from the environment, then apply CLI overrides."""
        cls.docstore_uri = os.environ.get("DOCSTORE")
        cls.metadata_db = os.environ.get("METADATA_DB", DEFAULT_DB_PATH)
        cls.token_file = os.environ.get("GDRIVE_TOKEN_FILE", "gdrive_token.json")
        cls.access_token = os.environ.get("GDRIVE_ACCESS_TOKEN") or None
        cls.user_email = os.environ.get("DOCFILER_USER") or _default_user()
        cls.max_tree_depth = _env_int("DOCFILER_MAX_DEPTH", 5)
        cls.provision_workers = _env_int("DOCFILER_WORKERS", 4)
        cls.request_timeout = _env_int("DOCFILER_TIMEOUT", 300)

        if args is not None:
            if getattr(args, "docstore", None):
                cls.docstore_uri = args.docstore
            if getattr(args, "db", None):
                cls.metadata_db = args.db
            if getattr(args, "depth", None):
                cls.max_tree_depth = args.depth
            cls.quiet = getattr(args, "quiet", False)

    @classmethod
    def print_left(cls, line1: str, line2: str) -> None:
        """Report a completed filing (always shown)."""
        cls._console.print(line1)
        cls._console.print(line2)

    @classmethod
    def print_right(cls, message: str) -> None:
        """Progress and diagnostic messages (suppressed with --quiet)."""
        if not cls.quiet:
            cls._console.print(message)

    @classmethod
    def output(cls, renderable: Any) -> None:
        """Command results: text, tables or trees (always shown)."""
        cls._console.print(renderable)

    @classmethod
    def warn(cls, message: str) -> None:
        """Degraded-but-continuing conditions; never suppressed."""
        cls._console.print(f"[yellow]⚠ {escape(message)}[/yellow]")
