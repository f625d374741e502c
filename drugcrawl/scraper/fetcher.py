"""HTTP fetcher: URL in, parsed :class:`Document` out."""

from __future__ import annotations

import logging
from typing import Optional, Union

import httpx
from lxml import etree
from lxml import html as lxml_html

from drugcrawl.config import settings
from drugcrawl.errors import FetchError, ParseError
from drugcrawl.scraper.models import Document

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (compatible; drugcrawl/1.1; +https://github.com/drugcrawl)"
    )
}


def make_client(timeout: Optional[float] = None) -> httpx.Client:
    """Build the HTTP client shared by every worker of a run.

    ``httpx.Client`` is safe to use from several threads; the connection pool
    is sized so that the worker pool never waits on a free connection.
    """
    workers = max(settings.workers, settings.tree_workers, 1)
    return httpx.Client(
        headers=_DEFAULT_HEADERS,
        timeout=timeout if timeout is not None else settings.request_timeout,
        follow_redirects=True,
        limits=httpx.Limits(max_connections=workers * 2, max_keepalive_connections=workers),
    )


def parse_document(
    url: str,
    content: Union[bytes, str],
    status_code: int = 200,
    encoding: str = "utf-8",
) -> Document:
    """Parse a raw HTML body into a :class:`Document`.

    The body is parsed as bytes with an explicit *encoding*, so pages that
    start with an XML declaration parse like any other.  An empty body gives
    an empty page.

    Raises:
        ParseError: lxml could not build a tree from a non-empty body.
    """
    if isinstance(content, str):
        content = content.encode(encoding)
    if not content.strip():
        tree = lxml_html.document_fromstring("<html></html>")
        return Document(url=url, tree=tree, status_code=status_code)

    parser = lxml_html.HTMLParser(encoding=encoding)
    try:
        tree = lxml_html.document_fromstring(content, parser=parser)
    except (etree.ParserError, ValueError) as exc:
        raise ParseError(url, exc) from exc
    return Document(url=url, tree=tree, status_code=status_code)


def fetch_document(url: str, client: Optional[httpx.Client] = None) -> Document:
    """Fetch *url* and return it parsed.

    No retry and no caching: each call is independent.  When *client* is
    omitted a throwaway client is opened for this single request.

    Raises:
        FetchError: On any transport failure or a 4xx/5xx response.
        ParseError: The body could not be parsed as HTML.
    """
    logger.debug("=> %s", url)
    try:
        if client is None:
            with make_client() as own_client:
                response = own_client.get(url)
                response.raise_for_status()
        else:
            response = client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        raise FetchError(url, exc) from exc

    return parse_document(
        url, response.content, response.status_code, encoding=response.encoding or "utf-8"
    )
