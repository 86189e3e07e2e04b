from __future__ import annotations

import base64
import hashlib
import hmac
import json
import math
import time
from typing import Any, Callable, Iterable, Optional

from tasklist.config import SUPPORTED_JWT_ALGORITHMS, Settings
from tasklist.logging import get_logger
from tasklist.service.errors import CredentialMissingError, InvalidTokenError
from tasklist.storage.models import IdentityContext

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "

_DIGESTS = {
    "HS256": hashlib.sha256,
    "HS384": hashlib.sha384,
    "HS512": hashlib.sha512,
}


class _Rejected(Exception):
    """Internal verification failure; the reason is logged, never returned."""

    def __init__(self, reason: str, **context: Any) -> None:
        super().__init__(reason)
        self.reason = reason
        self.context = context


class TokenAuthenticator:
    """Verifies HMAC-signed bearer tokens and extracts the caller's identity.

    The secret and allowed algorithms are fixed at construction; no other
    state is kept, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithms: Iterable[str] = ("HS256",),
        leeway_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("token secret must not be empty")
        allowed = tuple(alg.upper() for alg in algorithms)
        unsupported = [alg for alg in allowed if alg not in SUPPORTED_JWT_ALGORITHMS]
        if not allowed or unsupported:
            raise ValueError(f"unsupported token algorithms: {unsupported or 'none'}")
        self._secret = secret.encode()
        self.algorithms = allowed
        self.leeway_seconds = leeway_seconds
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: Settings, *, clock: Callable[[], float] = time.time
    ) -> "TokenAuthenticator":
        return cls(
            settings.jwt_secret,
            algorithms=settings.jwt_algorithms,
            leeway_seconds=settings.jwt_leeway_seconds,
            clock=clock,
        )

    def authenticate(self, raw_header: Optional[str]) -> IdentityContext:
        """Turn an ``Authorization`` header value into an ``IdentityContext``.

        Raises:
            CredentialMissingError: no header, or it lacks the ``Bearer `` prefix
            InvalidTokenError: the token failed any structural, signature or
                expiry check
        """
        if not raw_header or not raw_header.startswith(BEARER_PREFIX):
            raise CredentialMissingError("missing bearer credential")
        token = raw_header[len(BEARER_PREFIX):]
        try:
            claims = self._decode(token)
            return IdentityContext(
                tenant_id=self._string_claim(claims, "tenant_id"),
                user_id=self._string_claim(claims, "user_id"),
            )
        except _Rejected as rejected:
            logger.warning(rejected.reason, **rejected.context)
            raise InvalidTokenError("invalid token") from None

    def encode_token(
        self,
        tenant_id: str,
        user_id: str,
        ttl_seconds: int = 3600,
        *,
        extra_claims: Optional[dict[str, Any]] = None,
    ) -> str:
        """Sign a token for ``tenant_id``/``user_id`` with the first allowed algorithm."""
        payload: dict[str, Any] = dict(extra_claims or {})
        payload.update(
            {
                "tenant_id": tenant_id,
                "user_id": user_id,
                "exp": int(self._clock()) + ttl_seconds,
            }
        )
        algorithm = self.algorithms[0]
        header_enc = self._encode_segment(
            json.dumps({"alg": algorithm, "typ": "JWT"}, separators=(",", ":")).encode()
        )
        payload_enc = self._encode_segment(
            json.dumps(payload, separators=(",", ":")).encode()
        )
        signing_input = f"{header_enc}.{payload_enc}"
        return f"{signing_input}.{self._sign(signing_input, algorithm)}"

    def _decode(self, token: str) -> dict[str, Any]:
        try:
            header_b64, payload_b64, sig_b64 = token.split(".")
        except ValueError:
            raise _Rejected("jwt_malformed") from None

        header = self._load_segment(header_b64, "header")
        algorithm = header.get("alg")
        # Only the configured HMAC algorithms; rejects "none" and key-confusion tricks
        if algorithm not in self.algorithms:
            raise _Rejected("jwt_invalid_algorithm", alg=str(algorithm))

        expected_sig = self._sign(f"{header_b64}.{payload_b64}", algorithm)
        # Header values may carry non-ASCII text; compare as bytes
        if not hmac.compare_digest(expected_sig.encode(), sig_b64.encode("utf-8")):
            raise _Rejected("jwt_signature_mismatch")

        payload = self._load_segment(payload_b64, "payload")
        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise _Rejected("jwt_missing_exp")
        # json accepts NaN and Infinity, which would never compare as expired
        if not math.isfinite(exp):
            raise _Rejected("jwt_missing_exp")
        if exp <= self._clock() - self.leeway_seconds:
            raise _Rejected("jwt_expired", exp=exp)
        return payload

    def _load_segment(self, segment: str, part: str) -> dict[str, Any]:
        try:
            decoded = json.loads(self._decode_segment(segment))
        except (ValueError, TypeError):
            raise _Rejected(f"jwt_{part}_decode_failed") from None
        if not isinstance(decoded, dict):
            raise _Rejected(f"jwt_{part}_not_object")
        return decoded

    @staticmethod
    def _string_claim(claims: dict[str, Any], name: str) -> str:
        value = claims.get(name)
        if not isinstance(value, str):
            raise _Rejected("jwt_missing_claim", claim=name)
        return value

    def _sign(self, signing_input: str, algorithm: str) -> str:
        digest = hmac.new(
            self._secret, signing_input.encode(), _DIGESTS[algorithm]
        ).digest()
        return self._encode_segment(digest)

    @staticmethod
    def _encode_segment(data: bytes) -> str:
        return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")

    @staticmethod
    def _decode_segment(segment: str) -> bytes:
        padding = "=" * ((4 - len(segment) % 4) % 4)
        return base64.urlsafe_b64decode(segment + padding)
