from controlplane.schemas.storage import PresignRequest, PresignResponse

__all__ = [
    "PresignRequest",
    "PresignResponse",
]
