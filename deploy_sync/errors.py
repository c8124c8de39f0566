"""Error taxonomy for deploy notification processing.

Every error carries the HTTP status code the webhook answers with, so the
processor can turn any of them into a terminal result without inspecting the
concrete type.
"""

from __future__ import annotations

from typing import Any, Optional


class DeploySyncError(Exception):
    """Base exception for Deploy Sync."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ClientError(DeploySyncError):
    """Malformed or incomplete notification."""

    status_code = 400


class UnparseableIdentityError(ClientError):
    """Commit URL does not point at a repository on the configured host."""

    def __init__(self, commit_url: Any, reason: str):
        super().__init__(
            f"Cannot resolve repository from commit URL {commit_url!r}: {reason}",
            {"commit_url": commit_url},
        )
        self.commit_url = commit_url


class AuthError(DeploySyncError):
    """Missing or invalid webhook signature."""

    status_code = 401


class ConfigError(DeploySyncError):
    """Required credential configuration is missing."""

    status_code = 500


class UpstreamError(DeploySyncError):
    """GitHub API call failed or answered with an unexpected shape."""

    status_code = 502

    def __init__(self, message: str, remote_status: Optional[int] = None, body: Optional[str] = None):
        details: dict[str, Any] = {}
        if remote_status is not None:
            details["remote_status"] = remote_status
        if body:
            details["body"] = body
        super().__init__(message, details)
        self.remote_status = remote_status
