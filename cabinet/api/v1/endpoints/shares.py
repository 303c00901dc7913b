from fastapi import APIRouter, Depends

from cabinet.api.deps import get_share_service
from cabinet.schemas.file import FileUrl
from cabinet.schemas.share import SharedFolderView
from cabinet.services.share import ShareService

# Public routes: the token is the only credential
router = APIRouter()


@router.get("/{token}", response_model=SharedFolderView)
async def open_share(
    token: str,
    share_service: ShareService = Depends(get_share_service),
):
    """Shared folder with its files and immediate subfolders"""
    return await share_service.resolve_share(token)


@router.get("/{token}/folders/{folder_id}", response_model=SharedFolderView)
async def open_shared_subfolder(
    token: str,
    folder_id: str,
    share_service: ShareService = Depends(get_share_service),
):
    """Browse a subfolder of a shared folder"""
    return await share_service.resolve_subfolder(token, folder_id)


@router.get("/{token}/files/{file_id}/url", response_model=FileUrl)
async def shared_file_url(
    token: str,
    file_id: str,
    share_service: ShareService = Depends(get_share_service),
):
    """Short-lived URL for a file inside a shared folder"""
    return await share_service.shared_file_url(token, file_id)
