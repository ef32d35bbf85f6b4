"""
Token issuance for ZhipuAI API keys.

An API key has the form ``{id}.{secret}``. Requests are authorized with a
short-lived HS256 JWT signed with the secret half; the id travels as the
``api_key`` claim and all times are milliseconds since the epoch.
"""

from __future__ import annotations

import time
from datetime import timedelta

import jwt

from .exceptions import ConfigurationError, InvalidCredentialFormatError, SigningError

API_KEY_SEPARATOR = "."
TOKEN_ALGORITHM = "HS256"
TOKEN_HEADERS = {"alg": TOKEN_ALGORITHM, "sign_type": "SIGN"}


def split_api_key(api_key: str) -> tuple[str, str]:
    """Split an API key into its ``(id, secret)`` halves.

    Raises:
        InvalidCredentialFormatError: If the key does not contain exactly one
            separator or either half is empty.
    """
    parts = api_key.split(API_KEY_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise InvalidCredentialFormatError(
            "API key must have the form '{id}.{secret}'"
        )
    return parts[0], parts[1]


def generate_token(api_key: str, validity: timedelta) -> str:
    """Mint a signed token valid for ``validity`` from now.

    Args:
        api_key: Key of the form ``{id}.{secret}``
        validity: How long the token stays valid

    Returns:
        Encoded JWT, ready for the ``Authorization`` header

    Raises:
        InvalidCredentialFormatError: If the key is malformed
        ConfigurationError: If ``validity`` is negative
        SigningError: If the signer rejects the secret
    """
    key_id, secret = split_api_key(api_key)
    if validity < timedelta(0):
        raise ConfigurationError("validity must not be negative")

    issued_at = int(time.time() * 1000)
    payload = {
        "api_key": key_id,
        "exp": issued_at + int(validity.total_seconds() * 1000),
        "timestamp": issued_at,
    }

    try:
        return jwt.encode(
            payload,
            secret,
            algorithm=TOKEN_ALGORITHM,
            headers=TOKEN_HEADERS,
        )
    except (jwt.PyJWTError, TypeError, ValueError) as e:
        raise SigningError(f"Failed to sign token: {e}") from e
