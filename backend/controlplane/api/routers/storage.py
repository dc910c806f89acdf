from fastapi import APIRouter, Depends, HTTPException, status

from controlplane.api.deps import get_presigner
from controlplane.core.errors import ConfigurationMissing, InvalidInput, SigningFailure
from controlplane.schemas import PresignRequest, PresignResponse
from controlplane.services.presign import PresignedUrlService


router = APIRouter(prefix="/api/storage", tags=["storage"])


def _issue(
    presigner: PresignedUrlService,
    payload: PresignRequest,
    method: str,
) -> PresignResponse:
    try:
        presigned = presigner.issue(
            payload.bucket,
            payload.object_key,
            method,
            payload.file_size,
        )
    except InvalidInput as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ConfigurationMissing:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Presigned URL service is not configured",
        ) from None
    except SigningFailure:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Presigned URL generation failed",
        ) from None

    return PresignResponse(
        presigned_url=presigned.url,
        method=presigned.method,
        expires_at=presigned.expires_at,
        upload_route=presigned.upload_route,
    )


@router.post("/presigned-url", response_model=PresignResponse)
def create_put_presigned_url(
    payload: PresignRequest,
    presigner: PresignedUrlService = Depends(get_presigner),
) -> PresignResponse:
    return _issue(presigner, payload, "PUT")


@router.post("/presigned-url/get", response_model=PresignResponse)
def create_get_presigned_url(
    payload: PresignRequest,
    presigner: PresignedUrlService = Depends(get_presigner),
) -> PresignResponse:
    return _issue(presigner, payload, "GET")
