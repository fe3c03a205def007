"""Download route for receipts kept in local storage."""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from src.api.deps import Storage
from src.core.errors import NotFoundError
from src.core.receipt_storage import LocalReceiptStorage

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get(
    "/local/{key:path}",
    summary="Download a locally stored object",
    responses={404: {"description": "Object not found"}},
)
async def get_local_object(key: str, storage: Storage) -> FileResponse:
    """Serve a receipt written by the local storage backend."""
    if not isinstance(storage, LocalReceiptStorage):
        raise NotFoundError("Local storage is not enabled")

    path = storage.resolve(key)
    if path is None or not path.is_file():
        raise NotFoundError("Object not found")

    return FileResponse(path, media_type="text/plain; charset=utf-8")
