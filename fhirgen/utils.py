"""Utility functions for reading package sources.

This module loads JSON documents from local files, package directories and
URLs with consistent error handling, so the loader only deals with parsed
data.
"""

import json
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import urlparse

import requests

from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30


class JSONLoaderError(Exception):
    """Raised when a JSON source cannot be read or parsed."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message)


def is_url(source: str | Path) -> bool:
    """True if ``source`` is an http(s) URL."""
    if isinstance(source, Path):
        return False
    parsed = urlparse(str(source))
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def load_json_from_file(file_path: str | Path) -> Any:
    """Load JSON data from a local file.

    Args:
        file_path: Path to the JSON file.

    Returns:
        Parsed JSON data.

    Raises:
        JSONLoaderError: If the file is missing, unreadable, or not valid JSON.
    """
    file_path = Path(file_path)
    logger.debug("Loading JSON from file: %s", file_path)

    if not file_path.is_file():
        raise JSONLoaderError(f"File not found: {file_path}", str(file_path))

    if file_path.suffix.lower() != ".json":
        # Might still be valid JSON
        logger.warning("File does not have .json extension: %s", file_path)

    try:
        with file_path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise JSONLoaderError(f"Invalid JSON in file {file_path}: {e}", str(file_path)) from e
    except (OSError, UnicodeDecodeError) as e:
        raise JSONLoaderError(f"Error reading file {file_path}: {e}", str(file_path)) from e


def load_json_from_url(url: str, timeout: int = DEFAULT_TIMEOUT) -> Any:
    """Fetch and parse a JSON document.

    Args:
        url: URL to fetch JSON from.
        timeout: Request timeout in seconds.

    Returns:
        Parsed JSON data.

    Raises:
        JSONLoaderError: If the request fails or the response isn't valid JSON.
    """
    logger.debug("Fetching JSON from URL: %s", url)

    if not is_url(url):
        raise JSONLoaderError(f"Invalid URL: {url}", url)

    try:
        response = requests.get(url, timeout=timeout, headers={"Accept": "application/json"})
        response.raise_for_status()

        content_type = response.headers.get("content-type", "").lower()
        if "json" not in content_type and not url.endswith(".json"):
            logger.warning("URL %s does not have a JSON content type: %s", url, content_type)

        data = response.json()
        logger.info("Loaded JSON from %s", url)
        return data

    except requests.exceptions.Timeout as e:
        raise JSONLoaderError(f"Request timeout for URL: {url}", url) from e
    except requests.exceptions.ConnectionError as e:
        raise JSONLoaderError(f"Connection error for URL: {url}", url) from e
    except requests.exceptions.HTTPError as e:
        raise JSONLoaderError(
            f"HTTP error {e.response.status_code} for URL: {url}", url
        ) from e
    except requests.exceptions.RequestException as e:
        raise JSONLoaderError(f"Request error for URL {url}: {e}", url) from e
    except ValueError as e:
        # requests raises a ValueError subclass for undecodable bodies
        raise JSONLoaderError(f"Invalid JSON response from URL {url}: {e}", url) from e


def load_json(source: str | Path, timeout: int = DEFAULT_TIMEOUT) -> Any:
    """Load JSON from a file path or an http(s) URL."""
    if is_url(source):
        return load_json_from_url(str(source), timeout)
    return load_json_from_file(source)


def iter_json_files(directory: str | Path, pattern: str = "*.json") -> Iterator[Path]:
    """Yield JSON files of a directory in name order, skipping hidden files."""
    directory = Path(directory)
    if not directory.is_dir():
        raise JSONLoaderError(f"Not a directory: {directory}", str(directory))
    for path in sorted(directory.glob(pattern)):
        if path.is_file() and not path.name.startswith("."):
            yield path
