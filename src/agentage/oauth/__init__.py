# OAuth identity — per-provider links, token storage and refresh.
# Created: 2026-02-21

from agentage.oauth.base import AuthFailed, OAuthError, OAuthProvider, RefreshFailed
from agentage.oauth.manager import OAuthManager
from agentage.oauth.models import OAuthProfile, OAuthProviderData, OAuthTokens, ProviderId
from agentage.oauth.token_store import CredentialStore

__all__ = [
    "AuthFailed",
    "CredentialStore",
    "OAuthError",
    "OAuthManager",
    "OAuthProfile",
    "OAuthProvider",
    "OAuthProviderData",
    "OAuthTokens",
    "ProviderId",
    "RefreshFailed",
]
