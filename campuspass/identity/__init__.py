"""
Standalone bearer-credential utility.

This package has no dependency on other app packages (campuspass.db,
campuspass.security, etc.). Use AccessTokenService.verify() with a bearer
token string to get IdentityClaims.
"""

from .context import IdentityClaims
from .tokens import AccessTokenService, CredentialError

__all__ = [
    "AccessTokenService",
    "CredentialError",
    "IdentityClaims",
]
