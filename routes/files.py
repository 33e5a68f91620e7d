"""
Serves files stored by services.storage (trip covers and avatars).
"""
from fastapi import APIRouter
from fastapi.responses import FileResponse

from services.exceptions import StoredFileNotFoundError
from services.storage import resolve_path, guess_content_type

router = APIRouter(prefix="/files", tags=["Files"])


@router.get("/{bucket}/{path:path}")
async def get_file(bucket: str, path: str):
    file_path = resolve_path(bucket, path)
    if not file_path.is_file():
        raise StoredFileNotFoundError("File not found")

    return FileResponse(
        file_path,
        media_type=guess_content_type(file_path.name) or "application/octet-stream",
        filename=file_path.name,
    )
