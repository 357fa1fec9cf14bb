"""
Authentication helpers for the journal gateway.
"""

from .verifier import FirebaseTokenVerifier, Identity, extract_bearer_token

__all__ = [
    "FirebaseTokenVerifier",
    "Identity",
    "extract_bearer_token",
]
