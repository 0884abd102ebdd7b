"""
Photos router: upload, browse, search, download, edit, delete, undo.

All mutations go through the caller's command invoker so they can be
undone with POST /photos/undo.
"""
import logging
import mimetypes
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response

from photo_manager.dependencies.auth import get_current_user, get_registered_user
from photo_manager.dependencies.services import ServiceContainer, get_container, get_photo_service
from photo_manager.exceptions import MutationStatus
from photo_manager.models.user import User
from photo_manager.schemas.photo import PhotoFile, PhotoResponse, PhotoUpdate, UndoResponse
from photo_manager.schemas.search import SearchCriteria
from photo_manager.services.commands import DeleteCommand, UpdateCommand, UploadCommand
from photo_manager.services.photo import PhotoService
from photo_manager.services.processing import ProcessingPipeline

logger = logging.getLogger("photo_manager.photos")

router = APIRouter(prefix="/photos", tags=["Photos"])


def split_csv(value: Optional[str]) -> List[str]:
    """``"a, b,,c"`` -> ``["a", "b", "c"]``."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def raise_for_status(result: MutationStatus, photo_id: str) -> None:
    if result == MutationStatus.NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Photo {photo_id} not found",
        )
    if result == MutationStatus.FORBIDDEN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only modify your own photos",
        )


@router.post(
    "/",
    response_model=PhotoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a photo",
)
async def upload_photo(
    file: UploadFile = File(..., description="Photo file"),
    description: Optional[str] = Form(None),
    hashtags: Optional[str] = Form(None, description="Comma separated hashtags"),
    stages: Optional[str] = Form(None, description="Comma separated processing stages: resize, sepia, blur"),
    current_user: User = Depends(get_registered_user),
    container: ServiceContainer = Depends(get_container),
) -> PhotoResponse:
    """
    Upload a photo.

    The file is checked against the user's subscription limits, run through
    the requested processing stages in order, stored, and recorded.
    """
    try:
        pipeline = ProcessingPipeline.from_names(split_csv(stages))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    content = await file.read()
    photo_file = PhotoFile(
        filename=file.filename or "upload",
        content=content,
        content_type=file.content_type,
    )

    invoker = container.invoker_for(current_user.id)
    photo = await invoker.execute_command(
        UploadCommand(
            user=current_user,
            file=photo_file,
            description=description,
            hashtags=split_csv(hashtags),
            pipeline=pipeline,
        )
    )
    return PhotoResponse.model_validate(photo)


@router.get(
    "/",
    response_model=List[PhotoResponse],
    summary="Recent photos",
)
async def recent_photos(
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    photo_service: PhotoService = Depends(get_photo_service),
) -> List[PhotoResponse]:
    """Most recent uploads, newest first."""
    photos = await photo_service.recent_photos(limit)
    return [PhotoResponse.model_validate(p) for p in photos]


@router.get(
    "/search",
    response_model=List[PhotoResponse],
    summary="Search photos",
)
async def search_photos(
    hashtags: Optional[str] = Query(None, description="Comma separated; matches any"),
    min_size: Optional[int] = Query(None, ge=0),
    max_size: Optional[int] = Query(None, ge=0),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    author: Optional[str] = Query(None, description="Author name, case-insensitive"),
    current_user: User = Depends(get_current_user),
    photo_service: PhotoService = Depends(get_photo_service),
) -> List[PhotoResponse]:
    """Photos matching every given criterion."""
    tags = split_csv(hashtags)
    criteria = SearchCriteria(
        hashtags=frozenset(tags) if tags else None,
        min_size=min_size,
        max_size=max_size,
        start_date=start_date,
        end_date=end_date,
        author=author,
    )
    photos = await photo_service.search(criteria)
    return [PhotoResponse.model_validate(p) for p in photos]


@router.post(
    "/undo",
    response_model=UndoResponse,
    summary="Undo the last photo command",
)
async def undo_last(
    current_user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> UndoResponse:
    """
    Undo the most recent upload, update or delete of this session.

    Deletes cannot be undone; undoing one only records the attempt. A
    command that was refused or failed is popped but reports ``undone: false``.
    """
    invoker = container.session_invoker(current_user.id)
    command = await invoker.undo_last_command() if invoker is not None else None
    if command is None:
        return UndoResponse(undone=False, message="Nothing to undo")
    if isinstance(command, DeleteCommand):
        return UndoResponse(
            undone=False,
            command=command.kind,
            message="Undo of delete is not supported",
        )
    if not command.undone:
        return UndoResponse(
            undone=False,
            command=command.kind,
            message=f"The last {command.kind} changed nothing, so there was nothing to revert",
        )
    return UndoResponse(undone=True, command=command.kind, message=f"Undid {command.kind}")


@router.get(
    "/{photo_id}",
    response_model=PhotoResponse,
    summary="Get photo details",
)
async def get_photo(
    photo_id: str,
    current_user: User = Depends(get_current_user),
    photo_service: PhotoService = Depends(get_photo_service),
) -> PhotoResponse:
    photo = await photo_service.get_photo(photo_id)
    if photo is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Photo {photo_id} not found",
        )
    return PhotoResponse.model_validate(photo)


@router.get(
    "/{photo_id}/download",
    summary="Download photo bytes",
)
async def download_photo(
    photo_id: str,
    current_user: User = Depends(get_current_user),
    photo_service: PhotoService = Depends(get_photo_service),
) -> Response:
    not_found = HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Photo {photo_id} not found",
    )
    photo = await photo_service.get_photo(photo_id)
    if photo is None:
        raise not_found
    content = await photo_service.download(current_user, photo_id)
    if content is None:
        raise not_found
    media_type = mimetypes.guess_type(photo.filename)[0] or "application/octet-stream"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{photo.filename}"'},
    )


@router.patch(
    "/{photo_id}",
    response_model=PhotoResponse,
    summary="Update photo description and hashtags",
)
async def update_photo(
    photo_id: str,
    update: PhotoUpdate,
    current_user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> PhotoResponse:
    """Replace description and hashtags. Owners and administrators only."""
    result = await container.invoker_for(current_user.id).execute_command(
        UpdateCommand(
            user=current_user,
            photo_id=photo_id,
            new_description=update.description,
            new_hashtags=update.hashtags,
        )
    )
    raise_for_status(result, photo_id)
    photo = await container.photo_service.get_photo(photo_id)
    if photo is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Photo {photo_id} not found",
        )
    return PhotoResponse.model_validate(photo)


@router.delete(
    "/{photo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a photo",
)
async def delete_photo(
    photo_id: str,
    current_user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> None:
    """Delete a photo and its stored bytes. Owners and administrators only."""
    result = await container.invoker_for(current_user.id).execute_command(
        DeleteCommand(user=current_user, photo_id=photo_id)
    )
    raise_for_status(result, photo_id)
