"""Resolve the GitHub repository a Netlify deploy was built from."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

from .errors import UnparseableIdentityError
from .models import RepoIdentity


def resolve_identity(commit_url: Any, host: str = "github.com") -> RepoIdentity:
    """Extract (owner, repo) from ``https://<host>/<owner>/<repo>/commit/<sha>``.

    Anything else raises UnparseableIdentityError; callers decide whether that
    is a skip or a failure.
    """
    if not isinstance(commit_url, str) or not commit_url:
        raise UnparseableIdentityError(commit_url, "not a URL")

    try:
        parts = urlsplit(commit_url)
        hostname = parts.hostname
    except ValueError as exc:
        raise UnparseableIdentityError(commit_url, str(exc)) from exc

    if parts.scheme != "https":
        raise UnparseableIdentityError(commit_url, f"unsupported scheme {parts.scheme!r}")
    if hostname != host.lower():
        raise UnparseableIdentityError(commit_url, f"host {hostname!r} is not {host!r}")

    segments = parts.path.split("/")
    # segments[0] is the empty string before the leading slash
    if len(segments) < 4 or segments[3] != "commit":
        raise UnparseableIdentityError(commit_url, "path is not /<owner>/<repo>/commit/...")

    owner, repo = segments[1], segments[2]
    if not owner or not repo:
        raise UnparseableIdentityError(commit_url, "empty owner or repository")

    return RepoIdentity(owner=owner, repo=repo)
