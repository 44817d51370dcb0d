"""
HS256 JSON Web Tokens.

Signing and verification use the HMAC primitives of ``cryptography``;
verification is constant time.
"""

from __future__ import annotations

from typing import Any, Optional
import base64
import binascii
import json
import time

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from ..faults import InvalidTokenFault


class TokenCodec:
    """
    Issues and verifies HS256 tokens for one shared secret.

    Args:
        secret: HMAC key
        leeway: Seconds of clock skew tolerated for ``exp`` / ``nbf``
        require_exp: Reject tokens without an ``exp`` claim
    """

    algorithm = "HS256"

    def __init__(self, secret: str, *, leeway: int = 0, require_exp: bool = False):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._key = secret.encode("utf-8")
        self.leeway = leeway
        self.require_exp = require_exp

    def encode(self, payload: dict[str, Any], expires_in: Optional[int] = None) -> str:
        """
        Sign ``payload``.

        ``iat`` is always set; ``exp`` is set when ``expires_in`` (seconds)
        is given.
        """
        claims = dict(payload)
        now = int(time.time())
        claims.setdefault("iat", now)
        if expires_in is not None:
            claims["exp"] = now + int(expires_in)

        header = {"alg": self.algorithm, "typ": "JWT"}
        header_b64 = self._base64_encode_json(header)
        payload_b64 = self._base64_encode_json(claims)

        message = f"{header_b64}.{payload_b64}".encode()
        signature_b64 = self._base64_encode(self._sign(message))
        return f"{header_b64}.{payload_b64}.{signature_b64}"

    def decode(self, token: str) -> dict[str, Any]:
        """
        Validate and decode a token.

        Checks:
        1. Format (3 parts)
        2. Header (alg)
        3. Signature
        4. Expiration and not-before

        Raises:
            InvalidTokenFault: with the failing check as server-side reason
        """
        try:
            header_b64, payload_b64, signature_b64 = token.split(".")
        except ValueError:
            raise InvalidTokenFault("Malformed token: expected 3 parts")

        header = self._base64_decode_json(header_b64)
        if header.get("alg") != self.algorithm:
            raise InvalidTokenFault(f"Unsupported algorithm: {header.get('alg')}")

        message = f"{header_b64}.{payload_b64}".encode()
        try:
            signature = self._base64_decode(signature_b64)
        except (binascii.Error, ValueError):
            raise InvalidTokenFault("Malformed signature")
        if not self._verify(message, signature):
            raise InvalidTokenFault("Invalid signature")

        payload = self._base64_decode_json(payload_b64)

        now = int(time.time())
        exp = payload.get("exp")
        if exp is None:
            if self.require_exp:
                raise InvalidTokenFault("Missing exp claim")
        elif not isinstance(exp, (int, float)) or exp + self.leeway < now:
            raise InvalidTokenFault("Token expired")

        nbf = payload.get("nbf", 0)
        if isinstance(nbf, (int, float)) and nbf - self.leeway > now:
            raise InvalidTokenFault("Token not yet valid")

        return payload

    def _sign(self, message: bytes) -> bytes:
        h = hmac.HMAC(self._key, hashes.SHA256())
        h.update(message)
        return h.finalize()

    def _verify(self, message: bytes, signature: bytes) -> bool:
        h = hmac.HMAC(self._key, hashes.SHA256())
        h.update(message)
        try:
            h.verify(signature)
        except InvalidSignature:
            return False
        return True

    def _base64_encode(self, data: bytes) -> str:
        """URL-safe base64 encode."""
        return base64.urlsafe_b64encode(data).rstrip(b"=").decode()

    def _base64_decode(self, data: str) -> bytes:
        """URL-safe base64 decode."""
        padding = 4 - (len(data) % 4)
        if padding != 4:
            data += "=" * padding
        return base64.urlsafe_b64decode(data)

    def _base64_encode_json(self, data: dict) -> str:
        json_bytes = json.dumps(data, separators=(",", ":")).encode()
        return self._base64_encode(json_bytes)

    def _base64_decode_json(self, data: str) -> dict:
        try:
            decoded = json.loads(self._base64_decode(data))
        except (binascii.Error, ValueError):
            raise InvalidTokenFault("Malformed token segment")
        if not isinstance(decoded, dict):
            raise InvalidTokenFault("Token segment is not a JSON object")
        return decoded
