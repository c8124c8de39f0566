"""Deploy Sync package."""

from .config import Settings
from .models import DeployNotification, ProcessResult, RepoIdentity

__all__ = ["Settings", "DeployNotification", "RepoIdentity", "ProcessResult"]
