"""Reads the COMPONENT_VERSION marker shipped in the operator image."""

import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

COMPONENT_VERSION_FILE = "COMPONENT_VERSION"


def read_component_version(home: Optional[Union[str, Path]] = None) -> str:
    """
    Read the component version from ``$HOME/COMPONENT_VERSION``.

    Args:
        home: Directory holding the marker file (defaults to the user's home)

    Returns:
        The version string with surrounding whitespace removed

    Raises:
        FileNotFoundError: If the marker file does not exist
    """
    base = Path(home) if home is not None else Path.home()
    path = base / COMPONENT_VERSION_FILE

    if not path.is_file():
        logger.error(f"Couldn't read component version file: {path} does not exist")
        raise FileNotFoundError(f"File {path} does not exist")

    return path.read_text(encoding="utf-8").strip()
