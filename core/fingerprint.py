"""
Client Fingerprint Identity.

Derives a low-assurance pseudo-identity for a client from request metadata.
The identity only gates self-voting and vote-once rules; it is trivially
spoofable and is not an authentication mechanism.

`IdentityProvider` is the seam the rest of the application depends on, so a
real authentication scheme can replace `HeaderFingerprintProvider` without
touching the lifecycle engine or the suggestion board.
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass

from starlette.requests import HTTPConnection

CLIENT_FINGERPRINT_HEADER = "X-Client-Fingerprint"


@dataclass(frozen=True)
class RequestMetadata:
    """The request fields an identity is derived from"""

    address: str = ""
    user_agent: str = ""
    accept_language: str = ""
    client_token: str = ""

    @classmethod
    def from_connection(cls, conn: HTTPConnection) -> "RequestMetadata":
        """Build metadata from an HTTP request or WebSocket handshake"""
        forwarded_for = conn.headers.get("X-Forwarded-For")
        if forwarded_for:
            address = forwarded_for.split(",")[0].strip()
        elif conn.client:
            address = conn.client.host
        else:
            address = "unknown"

        return cls(
            address=address,
            user_agent=conn.headers.get("User-Agent", ""),
            accept_language=conn.headers.get("Accept-Language", ""),
            client_token=conn.headers.get(CLIENT_FINGERPRINT_HEADER, ""),
        )


class IdentityProvider(ABC):
    """Abstract base class for identity providers"""

    @abstractmethod
    def identify(self, metadata: RequestMetadata) -> str:
        """Return a deterministic identity string for the request"""
        pass


class HeaderFingerprintProvider(IdentityProvider):
    """Hashes address, user agent, locale and the client token together"""

    def __init__(self, digest_length: int = 16):
        self.digest_length = digest_length

    def identify(self, metadata: RequestMetadata) -> str:
        data = "-".join(
            [
                metadata.address or "",
                metadata.user_agent or "",
                metadata.accept_language or "",
                metadata.client_token or "",
            ]
        )
        return hashlib.sha256(data.encode("utf-8")).hexdigest()[: self.digest_length]
