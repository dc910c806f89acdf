import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Final
from urllib.parse import quote

from controlplane.core.config import Settings, get_settings
from controlplane.core.errors import (
    ConfigurationMissing,
    InvalidInput,
    SigningFailure,
)
from controlplane.core.signing import SUPPORTED_METHODS, SigningRequest, sign

logger = logging.getLogger(__name__)

PRESIGNED_URL_TTL_SECONDS: Final[int] = 60 * 15
RESUMABLE_UPLOAD_THRESHOLD: Final[int] = 100 * 1024 * 1024
MAX_BUCKET_NAME_LENGTH: Final[int] = 63

OBJECTS_ROUTE: Final[str] = "objects"

# RFC 3986 sub-delims plus ":" and "@" are legal inside a path segment.
_PATH_SEGMENT_SAFE = "!$&'()*+,;=:@"
_PATH_SAFE = _PATH_SEGMENT_SAFE + "/"

# Signed values go into the query unencoded.
_QUERY_UNSAFE_RE = re.compile(r"[&#=\x00-\x1f\x7f]")


class UploadRoute(str, Enum):
    DIRECT = "direct"
    RESUMABLE = "resumable"

    @property
    def prefix(self) -> str:
        return f"uploads/{self.value}"


def classify_upload(file_size: int | None) -> UploadRoute:
    if file_size is not None and file_size >= RESUMABLE_UPLOAD_THRESHOLD:
        return UploadRoute.RESUMABLE
    return UploadRoute.DIRECT


def is_query_safe(value: str) -> bool:
    """True when ``value`` survives raw placement in a query string."""
    return _QUERY_UNSAFE_RE.search(value) is None


def encode_path_segment(value: str) -> str:
    return quote(value, safe=_PATH_SEGMENT_SAFE)


def encode_path(value: str) -> str:
    return quote(value, safe=_PATH_SAFE)


def build_presigned_url(
    node_endpoint: str,
    route_prefix: str,
    request: SigningRequest,
    signature: str,
) -> str:
    """Compose the absolute URL a storage node will verify.

    Only the path is percent-encoded. The query carries the raw signed
    values so the node can rebuild the canonical string from it.
    """
    base = node_endpoint.strip().rstrip("/")
    if not base:
        raise ConfigurationMissing("NODE_ENDPOINT is not set")

    path = f"{route_prefix}/{encode_path_segment(request.bucket)}/{encode_path(request.object_key)}"
    query = [
        ("bucket", request.bucket),
        ("objectKey", request.object_key),
        ("method", request.method),
        ("exp", str(request.expires_at)),
    ]
    if request.file_size is not None:
        query.append(("fileSize", str(request.file_size)))
    query.append(("signature", signature))

    return f"{base}/{path}?" + "&".join(f"{name}={value}" for name, value in query)


@dataclass(frozen=True)
class PresignedUrl:
    url: str
    method: str
    expires_at: int
    upload_route: UploadRoute | None
    file_size: int | None = None


def _normalize_method(method: str) -> str:
    normalized = method.strip().upper() if isinstance(method, str) else ""
    if normalized not in SUPPORTED_METHODS:
        raise InvalidInput(f"Unsupported method: {method!r}")
    return normalized


def _validate_target(bucket: str, object_key: str, file_size: int | None) -> None:
    if not isinstance(bucket, str) or not bucket.strip():
        raise InvalidInput("bucket must not be empty")
    if len(bucket) > MAX_BUCKET_NAME_LENGTH:
        raise InvalidInput(f"bucket must be at most {MAX_BUCKET_NAME_LENGTH} characters")
    if not isinstance(object_key, str) or not object_key.strip():
        raise InvalidInput("object_key must not be empty")
    if not is_query_safe(bucket):
        raise InvalidInput("bucket must not contain '&', '#', '=' or control characters")
    if not is_query_safe(object_key):
        raise InvalidInput("object_key must not contain '&', '#', '=' or control characters")
    if file_size is not None:
        if isinstance(file_size, bool) or not isinstance(file_size, int):
            raise InvalidInput("file_size must be an integer")
        if file_size < 0:
            raise InvalidInput("file_size must not be negative")


class PresignedUrlService:
    """Issues HMAC-signed, expiring URLs for direct storage node access."""

    def __init__(
        self,
        secret_key: str,
        node_endpoint: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret_key = secret_key or ""
        self.node_endpoint = (node_endpoint or "").strip().rstrip("/")
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "PresignedUrlService":
        settings = settings or get_settings()
        return cls(settings.secret_key, settings.node_endpoint)

    @property
    def is_configured(self) -> bool:
        return bool(self._secret_key.strip()) and bool(self.node_endpoint)

    def ensure_configured(self) -> None:
        if not self.is_configured:
            logger.error("SECRET_KEY or NODE_ENDPOINT is empty; presigned URLs cannot be issued")
            raise ConfigurationMissing("SECRET_KEY or NODE_ENDPOINT is not set")

    def issue_put(self, bucket: str, object_key: str, file_size: int | None = None) -> PresignedUrl:
        return self.issue(bucket, object_key, "PUT", file_size)

    def issue_get(self, bucket: str, object_key: str, file_size: int | None = None) -> PresignedUrl:
        return self.issue(bucket, object_key, "GET", file_size)

    def issue(
        self,
        bucket: str,
        object_key: str,
        method: str,
        file_size: int | None = None,
    ) -> PresignedUrl:
        self.ensure_configured()
        method = _normalize_method(method)
        _validate_target(bucket, object_key, file_size)

        logger.info(
            "%s presigned URL requested - bucket: %s, objectKey: %s, fileSize: %s",
            method,
            bucket,
            object_key,
            file_size,
        )

        expires_at = int(self._clock()) + PRESIGNED_URL_TTL_SECONDS
        # Unsized URLs stay on the undifferentiated route; no upload route applies.
        upload_route = None if file_size is None else classify_upload(file_size)
        route_prefix = OBJECTS_ROUTE if upload_route is None else upload_route.prefix

        try:
            request = SigningRequest(
                bucket=bucket,
                object_key=object_key,
                method=method,
                expires_at=expires_at,
                file_size=file_size,
            )
            signature = sign(request.canonical_string(), self._secret_key)
            url = build_presigned_url(self.node_endpoint, route_prefix, request, signature)
        except Exception as exc:
            logger.exception("Presigned URL generation failed - bucket: %s, objectKey: %s", bucket, object_key)
            raise SigningFailure("Presigned URL generation failed") from exc

        return PresignedUrl(
            url=url,
            method=method,
            expires_at=expires_at,
            upload_route=upload_route,
            file_size=file_size,
        )


_presign_service: PresignedUrlService | None = None


def get_presign_service() -> PresignedUrlService:
    global _presign_service
    if _presign_service is None:
        _presign_service = PresignedUrlService.from_settings()
    return _presign_service


def reset_presign_service() -> None:
    global _presign_service
    _presign_service = None
