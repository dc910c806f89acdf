"""Storage node side of the presigned URL contract.

A node receiving a request on a presigned URL rebuilds the canonical string
from the query parameters, re-signs it with the shared secret and rejects the
request on any mismatch or once ``exp`` has passed.
"""

import logging
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import unquote, urlsplit

from controlplane.core.signing import SigningRequest, sign, signatures_match
from controlplane.services.presign import OBJECTS_ROUTE, UploadRoute, classify_upload

logger = logging.getLogger(__name__)

REQUIRED_PARAMS: tuple[str, ...] = ("bucket", "objectKey", "method", "exp", "signature")


class PresignVerificationError(Exception):
    """Raised when a storage node must reject a presigned request."""

    def __init__(self, status_code: int, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.data = data


def parse_presigned_url(url: str) -> tuple[str, str, str, dict[str, str]]:
    """Split a presigned URL into ``(route, bucket, object_key, query)``.

    Query values are taken verbatim, matching how they were emitted.
    """
    parts = urlsplit(url)
    path = parts.path.lstrip("/")
    if path.startswith(f"{OBJECTS_ROUTE}/"):
        route = OBJECTS_ROUTE
    else:
        for upload_route in UploadRoute:
            if path.startswith(f"{upload_route.prefix}/"):
                route = upload_route.prefix
                break
        else:
            raise ValueError(f"Unrecognized presigned route: {parts.path!r}")

    remainder = path[len(route) + 1 :]
    bucket, _, object_key = remainder.partition("/")
    query: dict[str, str] = {}
    for pair in parts.query.split("&"):
        if not pair:
            continue
        name, _, value = pair.partition("=")
        query[name] = value
    return route, unquote(bucket), unquote(object_key), query


def _parse_expiry(exp: str) -> int:
    try:
        return int(exp)
    except (TypeError, ValueError):
        raise PresignVerificationError(400, "exp is not a valid timestamp") from None


def _parse_file_size(file_size: str) -> int:
    try:
        size = int(file_size)
    except (TypeError, ValueError):
        raise PresignVerificationError(400, "fileSize is not a valid integer") from None
    if size < 0:
        raise PresignVerificationError(400, "fileSize must not be negative")
    return size


def verify_presigned_request(
    query: Mapping[str, str],
    *,
    expected_method: str,
    secret_key: str,
    bucket: str | None = None,
    object_key: str | None = None,
    route: str | None = None,
    now: float | None = None,
) -> SigningRequest:
    """Validate an incoming presigned request and return the signed fields.

    ``expected_method`` is the HTTP method of the actual request; ``bucket``,
    ``object_key`` and ``route`` describe its path when the caller has them.
    """
    missing = [name for name in REQUIRED_PARAMS if not query.get(name)]
    if missing:
        raise PresignVerificationError(
            400,
            "Required parameters are missing",
            {"required": list(REQUIRED_PARAMS), "missing": missing},
        )

    expires_at = _parse_expiry(query["exp"])
    current = time.time() if now is None else now
    if current > expires_at:
        raise PresignVerificationError(403, "Request has expired")

    method = query["method"].upper()
    if method != expected_method.upper():
        raise PresignVerificationError(
            400,
            f"Method mismatch. request: {expected_method.upper()}, signed: {method}",
        )

    file_size = None
    if query.get("fileSize"):
        file_size = _parse_file_size(query["fileSize"])

    if bucket is not None and bucket != query["bucket"]:
        raise PresignVerificationError(403, "Path bucket does not match the signed bucket")
    if object_key is not None and object_key != query["objectKey"]:
        raise PresignVerificationError(403, "Path object key does not match the signed object key")

    if route is not None:
        expected_route = OBJECTS_ROUTE if file_size is None else classify_upload(file_size).prefix
        if route != expected_route:
            raise PresignVerificationError(
                400,
                f"Route mismatch. request: {route}, expected: {expected_route}",
            )

    if not secret_key:
        raise PresignVerificationError(500, "SECRET_KEY is not configured")

    signed = SigningRequest(
        bucket=query["bucket"],
        object_key=query["objectKey"],
        method=method,
        expires_at=expires_at,
        file_size=file_size,
    )
    expected = sign(signed.canonical_string(), secret_key)
    if not signatures_match(query["signature"], expected):
        logger.warning(
            "Rejected presigned request with invalid signature - bucket: %s, objectKey: %s",
            signed.bucket,
            signed.object_key,
        )
        raise PresignVerificationError(403, "Signature is invalid")
    return signed


def verify_presigned_url(
    url: str,
    *,
    expected_method: str,
    secret_key: str,
    now: float | None = None,
) -> SigningRequest:
    try:
        route, bucket, object_key, query = parse_presigned_url(url)
    except ValueError as exc:
        raise PresignVerificationError(404, str(exc)) from exc
    return verify_presigned_request(
        query,
        expected_method=expected_method,
        secret_key=secret_key,
        bucket=bucket,
        object_key=object_key,
        route=route,
        now=now,
    )
