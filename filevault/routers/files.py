import logging
from typing import BinaryIO, Iterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from filevault.core.errors import FileVaultError, NotFoundError
from filevault.models.user import User
from filevault.routers.deps import current_user, folder_path, get_namespace, outcome_redirect, templates
from filevault.services.blobs import CHUNK_SIZE
from filevault.services.namespace import Namespace

logger = logging.getLogger(__name__)

router = APIRouter()

# Room for multipart boundaries and part headers around the file itself
MULTIPART_OVERHEAD = 64 * 1024


def iter_blob(stream: BinaryIO) -> Iterator[bytes]:
    try:
        while chunk := stream.read(CHUNK_SIZE):
            yield chunk
    finally:
        stream.close()


# --- show user's root files and folders (dashboard) ---
@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(
    request: Request,
    success: str | None = None,
    error: str | None = None,
    user: User = Depends(current_user),
    namespace: Namespace = Depends(get_namespace),
):
    listing = namespace.list_root(user)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": user,
            "files": listing.files,
            "folders": listing.folders,
            "stats": namespace.usage(user),
            "success": success,
            "error": error,
        },
    )


# --- upload a new file, to the root or into a folder ---
@router.post("/upload")
@router.post("/upload/{folder_id}")
async def upload_file(
    request: Request,
    folder_id: str | None = None,
    user: User = Depends(current_user),
    namespace: Namespace = Depends(get_namespace),
):
    # Refuse bodies that cannot fit before spooling them to disk
    content_length = request.headers.get("content-length", "")
    limit = request.app.state.settings.max_upload_bytes + MULTIPART_OVERHEAD
    if content_length.isdigit() and int(content_length) > limit:
        return outcome_redirect(folder_path(folder_id), error="file-too-large")

    form = await request.form()
    folder_id = folder_id or form.get("folder_id") or None
    back = folder_path(folder_id)

    upload = form.get("file")
    if not isinstance(upload, UploadFile) or not upload.filename:
        return outcome_redirect(back, error="no-file")

    try:
        await run_in_threadpool(
            namespace.upload, user, upload.file, upload.filename, upload.content_type, folder_id
        )
    except NotFoundError as e:
        return outcome_redirect("/dashboard", error=e.token)
    except FileVaultError as e:
        logger.info("Upload of %r rejected: %s", upload.filename, e.token)
        return outcome_redirect(back, error=e.token)
    finally:
        await upload.close()

    return outcome_redirect(back, success="uploaded")


# --- download a file ---
@router.get("/download/{file_id}")
def download_file(
    file_id: str,
    user: User = Depends(current_user),
    namespace: Namespace = Depends(get_namespace),
):
    try:
        file, stream = namespace.open_file(user, file_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="File not found")

    return StreamingResponse(
        iter_blob(stream),
        media_type=file.content_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(file.original_name)}",
        },
    )


# --- delete a file ---
@router.post("/delete/{file_id}")
def delete_file(
    file_id: str,
    user: User = Depends(current_user),
    namespace: Namespace = Depends(get_namespace),
):
    try:
        file = namespace.delete_file(user, file_id)
    except FileVaultError as e:
        return outcome_redirect("/dashboard", error=e.token)

    return outcome_redirect(folder_path(file.folder_id), success="deleted")
