"""Identity providers and token verification."""

from .base import IdentityProvider
from .deny_all import DenyAllIdentityProvider
from .factory import build_identity_provider
from .firebase import FirebaseIdentityProvider
from .mock_provider import MockIdentityProvider
from .token_verifier import TokenVerifier

__all__ = [
    "IdentityProvider",
    "DenyAllIdentityProvider",
    "FirebaseIdentityProvider",
    "MockIdentityProvider",
    "TokenVerifier",
    "build_identity_provider",
]
