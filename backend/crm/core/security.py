"""
Security utilities for tokens, signatures and encryption.

Provides Fernet encryption for third-party OAuth tokens at rest, signed
OAuth ``state`` parameters, and webhook signature verification for the
authentication provider's user-sync events.
"""

import base64
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from jose import JWTError, jwt
from svix.webhooks import Webhook

from .config import settings


# =============================================================================
# Session Tokens (issued by the auth provider)
# =============================================================================

def decode_session_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify a session JWT issued by the authentication provider.

    Args:
        token: Raw JWT from the Authorization header or session cookie

    Returns:
        Decoded claims, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_key,
            algorithms=[settings.auth_jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError:
        return None


# =============================================================================
# Signed OAuth State
# =============================================================================

STATE_ALGORITHM = "HS256"


def create_oauth_state(user_id: str, provider: str) -> str:
    """
    Create a short-lived signed ``state`` value for an OAuth redirect.

    The state binds the callback to the local user that started the flow,
    so the callback needs no session of its own.
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.oauth_state_ttl_minutes)
    payload = {
        "sub": str(user_id),
        "provider": provider,
        "nonce": secrets.token_urlsafe(12),
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=STATE_ALGORITHM)


def verify_oauth_state(state: str, provider: str) -> Optional[str]:
    """
    Verify a state value produced by :func:`create_oauth_state`.

    Returns:
        The bound user id, or None if the state is forged, expired, or was
        issued for another provider
    """
    if not state:
        return None
    try:
        payload = jwt.decode(state, settings.secret_key, algorithms=[STATE_ALGORITHM])
    except JWTError:
        return None
    if payload.get("provider") != provider:
        return None
    return payload.get("sub")


# =============================================================================
# Encryption for OAuth Tokens at Rest
# =============================================================================

def _get_fernet_key() -> bytes:
    """
    Derive a Fernet-compatible key from the encryption key.

    Fernet requires a 32-byte base64-urlsafe encoded key.
    PBKDF2 gives a consistent key from the configured encryption key.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"seodons_crm_token_salt",  # Static salt for consistent derivation
        iterations=100000,
        backend=default_backend()
    )
    return base64.urlsafe_b64encode(kdf.derive(settings.encryption_key.encode()))


_fernet = Fernet(_get_fernet_key())


def encrypt_secret(plaintext: Optional[str]) -> Optional[str]:
    """
    Encrypt a provider token before it is stored.

    Example:
        integration.access_token = encrypt_secret(tokens["access_token"])
    """
    if not plaintext:
        return None
    return _fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")


def decrypt_secret(ciphertext: Optional[str]) -> Optional[str]:
    """
    Decrypt a stored provider token.

    Raises:
        ValueError: If decryption fails (wrong key or corrupted data)
    """
    if not ciphertext:
        return None
    try:
        return _fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
    except InvalidToken as e:
        # Never include the ciphertext in the error
        raise ValueError("Failed to decrypt stored token") from e


# =============================================================================
# Webhook Signatures
# =============================================================================

def verify_webhook(body: bytes, headers: Mapping[str, str], secret: str) -> Any:
    """
    Verify a Svix-signed webhook (``svix-id``, ``svix-timestamp``,
    ``svix-signature``) and return its decoded JSON body.

    Raises:
        WebhookVerificationError: on missing headers, a stale timestamp or
        no matching signature
        ValueError: if a correctly signed body is not JSON
    """
    return Webhook(secret).verify(body, dict(headers))
