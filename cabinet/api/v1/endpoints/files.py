from typing import List, Optional
from fastapi import APIRouter, Depends, Form, Query, status, UploadFile, File as FastAPIFile
from fastapi.responses import StreamingResponse
import io

from cabinet.api.deps import get_current_principal, get_file_service, get_optional_principal
from cabinet.repositories.file import ANY_FOLDER
from cabinet.schemas.file import File, FileUrl, FolderAssignment
from cabinet.schemas.user import Principal
from cabinet.services.file import FileService

router = APIRouter()


@router.post("/upload", response_model=File, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = FastAPIFile(...),
    description: Optional[str] = Form(None),
    is_public: bool = Form(False),
    folder_id: Optional[str] = Form(None),
    principal: Principal = Depends(get_current_principal),
    file_service: FileService = Depends(get_file_service),
):
    """Upload a new file"""
    content = await file.read()
    return await file_service.upload_file(
        owner_id=principal.id,
        data=content,
        original_name=file.filename,
        mime_type=file.content_type or "application/octet-stream",
        size=len(content),
        description=description,
        is_public=is_public,
        folder_id=folder_id,
    )


@router.get("/", response_model=List[File])
async def list_files(
    folder_id: Optional[str] = Query(None, description="Only files in this folder"),
    root_only: bool = Query(False, description="Only files outside any folder"),
    principal: Principal = Depends(get_current_principal),
    file_service: FileService = Depends(get_file_service),
):
    """List current user's files, newest first"""
    if root_only:
        scope = None
    else:
        scope = folder_id or ANY_FOLDER
    return await file_service.list_files(principal.id, scope)


@router.get("/{file_id}", response_model=File)
async def get_file(
    file_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    file_service: FileService = Depends(get_file_service),
):
    """Get file metadata"""
    return await file_service.resolve_file(file_id, principal.id if principal else None)


@router.get("/{file_id}/download")
async def download_file(
    file_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    file_service: FileService = Depends(get_file_service),
):
    """Download file content"""
    file, content = await file_service.download_file(file_id, principal.id if principal else None)

    # Return as streaming response
    return StreamingResponse(
        io.BytesIO(content),
        media_type=file.mime_type,
        headers={
            "Content-Disposition": f'attachment; filename="{file.original_name}"',
            "Content-Length": str(len(content)),
        }
    )


@router.get("/{file_id}/preview", response_model=FileUrl)
async def preview_file(
    file_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    file_service: FileService = Depends(get_file_service),
):
    """Get a short-lived URL for viewing the file"""
    return await file_service.preview_url(file_id, principal.id if principal else None)


@router.get("/{file_id}/public-url", response_model=FileUrl)
async def get_public_url(
    file_id: str,
    principal: Principal = Depends(get_current_principal),
    file_service: FileService = Depends(get_file_service),
):
    return await file_service.public_url(file_id, principal.id)


@router.put("/{file_id}/folder", response_model=File)
async def assign_folder(
    file_id: str,
    assignment: FolderAssignment,
    principal: Principal = Depends(get_current_principal),
    file_service: FileService = Depends(get_file_service),
):
    """Move a file into a folder, or to the root with a null folder_id"""
    return await file_service.reassign_folder(file_id, principal.id, assignment.folder_id)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: str,
    principal: Principal = Depends(get_current_principal),
    file_service: FileService = Depends(get_file_service),
):
    """Delete file"""
    await file_service.delete_file(file_id, principal.id)
    return None
