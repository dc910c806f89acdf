from controlplane.services.presign import PresignedUrlService, get_presign_service


def get_presigner() -> PresignedUrlService:
    return get_presign_service()
