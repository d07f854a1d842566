"""
Repository browser links.

GitWeb is the only supported browser: a changed project links to its
commit page.
"""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit


class GitWebBrowser:
    """
    Builds GitWeb commit links.

    Example:
        >>> browser = GitWebBrowser("https://git.example.com/gitweb?o=age")
        >>> browser.changeset_link("platform/foo", "abc123")
        'https://git.example.com/gitweb?o=age&p=platform/foo.git&a=commit&h=abc123'
    """

    def __init__(self, url: str):
        parts = urlsplit(url.strip())
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"Invalid GitWeb URL: {url!r}")
        self.url = url.strip()
        self._parts = parts

    def changeset_link(self, server_path: str, revision: str) -> str:
        """Commit page of ``revision`` in project ``server_path``."""
        query = f"p={server_path}.git&a=commit&h={revision}"
        if self._parts.query:
            query = f"{self._parts.query}&{query}"
        return urlunsplit(
            (self._parts.scheme, self._parts.netloc, self._parts.path, query, "")
        )

    def __repr__(self) -> str:
        return f"GitWebBrowser({self.url!r})"
