"""
Persistence of environment maps on the local filesystem.

A capture always replaces the whole file for its address; nothing from a
previous capture survives. Writes go to a temporary file in the same
directory and are renamed into place, so a concurrent reader sees either the
old file or the new one.
"""

import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Optional

from . import envfile
from .address import Address
from .reporting import Log, log as default_log, warn as default_warn


DIRECTORY_MODE = 0o700


class EnvFileStore:
    """
    Reads and writes environment files addressed by :class:`Address`.

    Args:
        log: Receives progress lines
        warn: Receives warnings about malformed lines
    """

    def __init__(self, log: Optional[Log] = None, warn: Optional[Log] = None):
        self.log = log or default_log
        self.warn = warn or default_warn

    def ensure_directory(self, directory: Path) -> Path:
        """
        Create the store directory if it does not exist.

        New directories (and missing parents) are created owner-only.

        Raises:
            NotADirectoryError: if the path exists and is not a directory
        """
        directory = Path(directory)
        missing = []
        current = directory
        while not current.exists() and current.parent != current:
            missing.append(current)
            current = current.parent

        # Top down, so every new ancestor gets the mode too
        for path in reversed(missing):
            path.mkdir(mode=DIRECTORY_MODE, exist_ok=True)

        if not directory.is_dir():
            raise NotADirectoryError(f"Expected {directory} to be a directory")

        return directory

    def write(self, address: Address, env: Mapping[str, str]) -> Path:
        """
        Replace the file at ``address`` with ``env``.

        Args:
            address: Where to write
            env: Variables to persist, written in iteration order

        Returns:
            Path of the written file

        Raises:
            NotADirectoryError: if the store directory is a plain file
            envfile.InvalidEnvironmentKey: if a key cannot be stored
            OSError: on any filesystem failure
        """
        # Serialize first so a bad key never leaves a directory or temp file behind
        data = envfile.serialize(env)
        directory = self.ensure_directory(address.directory)

        self.log(f"Writing {len(env)} environment variables to {address.file_name}")

        target = address.path
        fd, temp_path = tempfile.mkstemp(prefix=f"{address.file_name}.", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(data)
            os.replace(temp_path, target)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

        return target

    def read(self, address: Address) -> Dict[str, str]:
        """
        Load the environment stored at ``address``.

        A missing file is an empty environment, not an error. Lines without
        ``=`` are skipped with a warning.

        Returns:
            Mapping of variable name to value

        Raises:
            OSError: if the file exists but cannot be read
        """
        path = address.path
        if not path.exists():
            return {}

        with open(path, "r", encoding="utf-8", newline="") as handle:
            content = handle.read()

        env, malformed = envfile.parse(content)
        for token in malformed:
            self.warn(f"Skipping malformed line {token.line_no} in {path}")

        return env

    def exists(self, address: Address) -> bool:
        return address.path.is_file()
