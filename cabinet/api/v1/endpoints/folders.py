from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from cabinet.api.deps import get_current_principal, get_folder_service, get_share_service
from cabinet.schemas.folder import Folder, FolderCreate, FolderPath, FolderSummary, FolderUpdate, FolderCrumb
from cabinet.schemas.share import ShareCreate, SharedFolder
from cabinet.schemas.user import Principal
from cabinet.services.folder import FolderService
from cabinet.services.share import ShareService

router = APIRouter()


@router.get("/", response_model=List[FolderSummary])
async def list_folders(
    parent_id: Optional[str] = Query(None, description="List children of this folder; roots when omitted"),
    principal: Principal = Depends(get_current_principal),
    folder_service: FolderService = Depends(get_folder_service),
):
    """List immediate subfolders with their content counts"""
    return await folder_service.list_folders(principal.id, parent_id)


@router.get("/all", response_model=List[Folder])
async def list_all_folders(
    principal: Principal = Depends(get_current_principal),
    folder_service: FolderService = Depends(get_folder_service),
):
    """Every folder of the current user"""
    return await folder_service.list_all_folders(principal.id)


@router.post("/", response_model=Folder, status_code=status.HTTP_201_CREATED)
async def create_folder(
    folder_data: FolderCreate,
    principal: Principal = Depends(get_current_principal),
    folder_service: FolderService = Depends(get_folder_service),
):
    """Create a new folder"""
    return await folder_service.create_folder(
        principal.id,
        folder_data.name,
        folder_data.description,
        folder_data.parent_id,
    )


@router.get("/{folder_id}", response_model=Folder)
async def get_folder(
    folder_id: str,
    principal: Principal = Depends(get_current_principal),
    folder_service: FolderService = Depends(get_folder_service),
):
    return await folder_service.get_folder(folder_id, principal.id)


@router.get("/{folder_id}/path", response_model=FolderPath)
async def get_folder_path(
    folder_id: str,
    principal: Principal = Depends(get_current_principal),
    folder_service: FolderService = Depends(get_folder_service),
):
    """Breadcrumb from the root down to this folder"""
    chain = await folder_service.resolve_path(folder_id, principal.id)
    return FolderPath(folder_id=folder_id, path=[FolderCrumb.model_validate(f) for f in chain])


@router.put("/{folder_id}", response_model=Folder)
async def update_folder(
    folder_id: str,
    folder_update: FolderUpdate,
    principal: Principal = Depends(get_current_principal),
    folder_service: FolderService = Depends(get_folder_service),
):
    """Rename and/or move a folder"""
    return await folder_service.update_folder(
        folder_id,
        principal.id,
        folder_update.name,
        folder_update.description,
        folder_update.parent_id,
    )


@router.delete("/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_folder(
    folder_id: str,
    principal: Principal = Depends(get_current_principal),
    folder_service: FolderService = Depends(get_folder_service),
):
    """Delete an empty folder"""
    await folder_service.delete_folder(folder_id, principal.id)
    return None


@router.post("/{folder_id}/share", response_model=SharedFolder, status_code=status.HTTP_201_CREATED)
async def share_folder(
    folder_id: str,
    share_data: ShareCreate,
    principal: Principal = Depends(get_current_principal),
    share_service: ShareService = Depends(get_share_service),
):
    """Create an expiring public link for a folder"""
    return await share_service.issue_share(folder_id, principal.id, share_data.duration)


@router.get("/{folder_id}/shares", response_model=List[SharedFolder])
async def list_folder_shares(
    folder_id: str,
    principal: Principal = Depends(get_current_principal),
    share_service: ShareService = Depends(get_share_service),
):
    return await share_service.list_shares(folder_id, principal.id)
