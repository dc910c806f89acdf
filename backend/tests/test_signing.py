import base64
import hashlib
import hmac

import pytest

from controlplane.core.errors import SigningError
from controlplane.core.signing import SigningRequest, build_canonical_string, sign, signatures_match


def _reference_signature(data: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), data.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


def test_short_canonical_form_uses_fixed_field_order():
    assert (
        build_canonical_string("photos", "2024/a.jpg", "GET", 1700000900)
        == "bucket=photos&objectKey=2024/a.jpg&method=GET&exp=1700000900"
    )


def test_long_canonical_form_appends_file_size():
    assert (
        build_canonical_string("photos", "2024/a.jpg", "PUT", 1700000900, 2048)
        == "bucket=photos&objectKey=2024/a.jpg&method=PUT&exp=1700000900&fileSize=2048"
    )


def test_canonical_string_keeps_raw_values():
    canonical = build_canonical_string("photos", "my dir/ä&b.jpg", "PUT", 1, 0)
    assert canonical == "bucket=photos&objectKey=my dir/ä&b.jpg&method=PUT&exp=1&fileSize=0"


def test_signing_request_is_independent_of_field_order():
    first = SigningRequest(
        bucket="photos",
        object_key="2024/a.jpg",
        method="PUT",
        expires_at=1700000900,
        file_size=2048,
    )
    second = SigningRequest(
        file_size=2048,
        expires_at=1700000900,
        method="PUT",
        object_key="2024/a.jpg",
        bucket="photos",
    )
    assert first == second
    assert first.canonical_string() == second.canonical_string()
    assert sign(first.canonical_string(), "s3cr3t") == sign(second.canonical_string(), "s3cr3t")


def test_signing_request_is_immutable():
    request = SigningRequest(bucket="b", object_key="k", method="GET", expires_at=1)
    with pytest.raises(AttributeError):
        request.bucket = "other"  # type: ignore[misc]


def test_sign_matches_reference_hmac():
    data = "bucket=photos&objectKey=2024/a.jpg&method=PUT&exp=1700000900&fileSize=2048"
    assert sign(data, "s3cr3t") == _reference_signature(data, "s3cr3t")


def test_sign_is_unpadded_base64url():
    signature = sign("bucket=b&objectKey=k&method=GET&exp=1", "secret")
    # 32-byte digest encodes to 43 characters once padding is stripped.
    assert len(signature) == 43
    assert "=" not in signature
    assert "+" not in signature
    assert "/" not in signature


def test_sign_is_deterministic():
    data = "bucket=b&objectKey=k&method=GET&exp=1"
    assert {sign(data, "secret") for _ in range(5)} == {sign(data, "secret")}


def test_sign_changes_with_secret():
    data = "bucket=b&objectKey=k&method=GET&exp=1"
    assert sign(data, "secret-a") != sign(data, "secret-b")


@pytest.mark.parametrize(
    "field, value",
    [
        ("bucket", "videos"),
        ("object_key", "2024/b.jpg"),
        ("method", "GET"),
        ("expires_at", 1700000901),
        ("file_size", 2049),
    ],
)
def test_changing_any_signed_field_changes_signature(field, value):
    base = {
        "bucket": "photos",
        "object_key": "2024/a.jpg",
        "method": "PUT",
        "expires_at": 1700000900,
        "file_size": 2048,
    }
    original = SigningRequest(**base)
    changed = SigningRequest(**{**base, field: value})
    assert sign(original.canonical_string(), "s3cr3t") != sign(changed.canonical_string(), "s3cr3t")


@pytest.mark.parametrize("secret", ["", "   "])
def test_sign_refuses_empty_secret(secret):
    with pytest.raises(SigningError):
        sign("bucket=b&objectKey=k&method=GET&exp=1", secret)


def test_signatures_match():
    signature = sign("payload", "secret")
    assert signatures_match(signature, signature)
    assert not signatures_match(signature, signature[:-1])
    assert not signatures_match(signature, sign("payload", "other"))
