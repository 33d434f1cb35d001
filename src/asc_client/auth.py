"""
JWT bearer token issuance for the App Store Connect API.

Apple rejects tokens that live longer than 20 minutes, so tokens are minted
with a shorter lifetime and refreshed lazily shortly before they expire.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Callable, Optional, Union

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .exceptions import AuthenticationError, ValidationError

logger = logging.getLogger(__name__)

AUDIENCE = "appstoreconnect-v1"
ALGORITHM = "ES256"
MAX_TOKEN_LIFETIME = timedelta(minutes=20)
DEFAULT_TOKEN_LIFETIME = timedelta(minutes=19)
DEFAULT_REFRESH_MARGIN = timedelta(seconds=60)


@dataclass(frozen=True)
class Credential:
    """Signing material for one App Store Connect API key."""

    key_id: str
    issuer_id: str
    private_key: str

    def __post_init__(self):
        if not all(
            [
                str(self.key_id or "").strip(),
                str(self.issuer_id or "").strip(),
                str(self.private_key or "").strip(),
            ]
        ):
            raise ValidationError("Missing required authentication parameters")

    def __repr__(self) -> str:
        return f"Credential(key_id={self.key_id!r}, issuer_id={self.issuer_id!r})"

    @classmethod
    def from_file(
        cls, key_id: str, issuer_id: str, private_key_path: Union[str, Path]
    ) -> "Credential":
        """Load the private key from a .p8 file."""
        path = Path(private_key_path)
        if not path.exists():
            raise ValidationError(f"Private key file not found: {private_key_path}")
        if path.is_dir():
            raise ValidationError(f"Private key path is a directory: {private_key_path}")
        try:
            with open(path, "r") as f:
                private_key = f.read()
        except IOError as e:
            raise AuthenticationError(f"Failed to load private key: {e}")
        return cls(key_id=key_id, issuer_id=issuer_id, private_key=private_key)

    def load_signing_key(self) -> ec.EllipticCurvePrivateKey:
        """Parse the PEM key; App Store Connect keys must be elliptic-curve keys."""
        try:
            key = serialization.load_pem_private_key(
                self.private_key.encode("utf-8"), password=None
            )
        except (ValueError, TypeError) as e:
            raise AuthenticationError(f"Invalid private key: {e}")
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise AuthenticationError("Private key is not an elliptic-curve (ECDSA) key")
        return key


class TokenManager:
    """
    Mints and caches bearer tokens for a single credential.

    Safe to share between threads: the cache is guarded by a lock, so
    concurrent callers that find the token stale wait for one signing
    operation and then reuse its result.

    Args:
        credential: Key ID, issuer ID and private key to sign with
        lifetime: Token lifetime (at most 20 minutes)
        refresh_margin: Mint a new token this long before the cached one expires
        clock: Returns the current UNIX time in seconds
    """

    def __init__(
        self,
        credential: Credential,
        lifetime: Optional[timedelta] = None,
        refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        lifetime = lifetime or DEFAULT_TOKEN_LIFETIME
        if lifetime <= timedelta(0) or lifetime > MAX_TOKEN_LIFETIME:
            raise ValidationError(
                f"Token lifetime must be between 0 and 20 minutes, got {lifetime}"
            )
        if refresh_margin >= lifetime:
            raise ValidationError("Token refresh margin must be shorter than its lifetime")

        self.credential = credential
        self.lifetime = lifetime
        self.refresh_margin = refresh_margin
        self._clock = clock
        self._lock = threading.Lock()
        self._signing_key: Optional[ec.EllipticCurvePrivateKey] = None
        self._token: Optional[str] = None
        self._token_expiry: Optional[int] = None

    def token(self) -> str:
        """Return the cached token, minting a new one when absent or near expiry."""
        with self._lock:
            now = int(self._clock())
            if self._token and self._token_expiry and self._is_fresh(now):
                return self._token
            self._token, self._token_expiry = self._mint(now)
            return self._token

    def invalidate(self) -> None:
        """Drop the cached token so the next call mints a new one."""
        with self._lock:
            self._token = None
            self._token_expiry = None

    @property
    def expiry(self) -> Optional[int]:
        return self._token_expiry

    def _is_fresh(self, now: int) -> bool:
        margin = int(self.refresh_margin.total_seconds())
        return now < self._token_expiry - margin

    def _mint(self, now: int):
        if self._signing_key is None:
            self._signing_key = self.credential.load_signing_key()

        expiry = now + int(self.lifetime.total_seconds())
        payload = {
            "iss": self.credential.issuer_id,
            "iat": now,
            "exp": expiry,
            "aud": AUDIENCE,
        }
        headers = {"alg": ALGORITHM, "kid": self.credential.key_id, "typ": "JWT"}

        try:
            token = jwt.encode(
                payload, self._signing_key, algorithm=ALGORITHM, headers=headers
            )
        except Exception as e:
            raise AuthenticationError(f"Failed to generate JWT token: {e}")

        logger.debug(f"Minted bearer token for key {self.credential.key_id}, exp={expiry}")
        return token, expiry
