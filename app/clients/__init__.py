"""Expose constructed client wrappers."""

from .github_contents import GitHubContentsClient, RemoteFile
from .local_store import LocalTokenStore
from .strava import AthleteProfile, StravaOAuthClient

__all__ = [
    "AthleteProfile",
    "GitHubContentsClient",
    "LocalTokenStore",
    "RemoteFile",
    "StravaOAuthClient",
]
