import base64
import hashlib
import hmac
from dataclasses import dataclass
from typing import Literal

from controlplane.core.errors import SigningError

HttpMethod = Literal["GET", "PUT"]

SUPPORTED_METHODS: tuple[str, ...] = ("GET", "PUT")


@dataclass(frozen=True, kw_only=True)
class SigningRequest:
    """Fields covered by a presigned URL signature."""

    bucket: str
    object_key: str
    method: HttpMethod
    expires_at: int
    file_size: int | None = None

    def canonical_string(self) -> str:
        return build_canonical_string(
            self.bucket,
            self.object_key,
            self.method,
            self.expires_at,
            self.file_size,
        )


def build_canonical_string(
    bucket: str,
    object_key: str,
    method: str,
    expires_at: int,
    file_size: int | None = None,
) -> str:
    """Serialize the signed fields in their fixed order.

    Values are used raw; percent-encoding belongs to the URL, not the
    signature. ``fileSize`` is appended only for size-aware URLs.
    """
    canonical = f"bucket={bucket}&objectKey={object_key}&method={method}&exp={expires_at}"
    if file_size is not None:
        canonical += f"&fileSize={file_size}"
    return canonical


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def sign(canonical_string: str, secret_key: str) -> str:
    """Return the unpadded base64url HMAC-SHA256 of ``canonical_string``."""
    if not secret_key or not secret_key.strip():
        raise SigningError("Refusing to sign with an empty secret key")
    digest = hmac.new(
        secret_key.encode("utf-8"),
        canonical_string.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return _b64url(digest)


def signatures_match(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
