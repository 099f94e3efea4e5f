"""Reading of taxonomy, exclusion and settings documents (YAML or JSON)."""

from pathlib import Path
from typing import Any

import yaml

from inbox_sorter.utils.exceptions import ConfigurationError
from inbox_sorter.utils.logging_config import get_logger

logger = get_logger(__name__)


def load_document(path: Path, what: str) -> Any:
    """Load a YAML or JSON document.

    JSON documents are valid YAML, so both go through ``yaml.safe_load``.

    Args:
        path: Document location.
        what: Short description used in error messages (e.g. "taxonomy").

    Returns:
        Parsed document, ``{}`` for an empty file.

    Raises:
        ConfigurationError: If the file is missing, unreadable or not valid YAML/JSON.
    """
    path = Path(path).expanduser()

    if not path.is_file():
        raise ConfigurationError(
            f"{what} file not found: {path}",
            details={"path": str(path)},
        )

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse {what} file {path}",
            details={"path": str(path)},
            cause=e,
        )
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read {what} file {path}",
            details={"path": str(path)},
            cause=e,
        )

    logger.debug(f"Loaded {what} document from {path}")
    return {} if data is None else data
