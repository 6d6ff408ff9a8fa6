"""Ontology source loading: inline content, a local path, or a one-shot URL fetch."""

import logging
from pathlib import Path
from typing import Optional

import httpx

from ontocli.domain.errors import SourceLoadError

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 10.0

TURTLE_ACCEPT = "text/turtle, application/x-turtle;q=0.9, text/plain;q=0.5"


def read_path(path: str, encoding: str = "utf-8") -> str:
    source = Path(path)
    if not source.is_file():
        raise SourceLoadError(
            f"Ontology file not found: {path}",
            identifier=path,
            details={"path": path},
        )
    try:
        text = source.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as e:
        raise SourceLoadError(
            f"Could not read ontology file {path}: {e}",
            identifier=path,
            details={"path": path},
        ) from e
    logger.debug(f"Read {len(text)} characters from {path}")
    return text


def fetch_url(url: str, timeout: float = DEFAULT_FETCH_TIMEOUT, client: Optional[httpx.Client] = None) -> str:
    """Fetch a Turtle document over HTTP(S)."""
    if not url.startswith(("http://", "https://")):
        raise SourceLoadError(
            f"Unsupported URL scheme: {url}",
            identifier=url,
            details={"url": url},
        )
    owns_client = client is None
    http = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        response = http.get(url, headers={"Accept": TURTLE_ACCEPT})
        response.raise_for_status()
        logger.info(f"Fetched {len(response.text)} characters from {url}")
        return response.text
    except httpx.HTTPStatusError as e:
        raise SourceLoadError(
            f"HTTP error fetching ontology: {e.response.status_code}",
            identifier=url,
            details={"url": url, "status_code": e.response.status_code},
        ) from e
    except httpx.HTTPError as e:
        raise SourceLoadError(
            f"Error fetching ontology from {url}: {e}",
            identifier=url,
            details={"url": url},
        ) from e
    finally:
        if owns_client:
            http.close()


def load_source(
    content: Optional[str] = None,
    path: Optional[str] = None,
    url: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> str:
    """Return the document text of exactly one of ``content``, ``path`` or ``url``."""
    given = [name for name, value in (("content", content), ("path", path), ("url", url)) if value is not None]
    if len(given) != 1:
        raise SourceLoadError(
            "Exactly one of content, path or url must be given",
            details={"given": given},
        )
    if content is not None:
        return content
    if path is not None:
        return read_path(path)
    return fetch_url(url, client=client)
