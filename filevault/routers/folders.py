from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse

from filevault.core.errors import FileVaultError, NotFoundError
from filevault.models.user import User
from filevault.routers.deps import current_user, folder_path, get_namespace, outcome_redirect, templates
from filevault.services.namespace import Namespace

router = APIRouter()


# --- create a folder at the root or inside another folder ---
@router.post("/folder")
def create_folder(
    name: str = Form(""),
    parent_id: str = Form(""),
    user: User = Depends(current_user),
    namespace: Namespace = Depends(get_namespace),
):
    back = folder_path(parent_id or None)
    try:
        namespace.create_folder(user, name, parent_id or None)
    except NotFoundError as e:
        return outcome_redirect("/dashboard", error=e.token)
    except FileVaultError as e:
        return outcome_redirect(back, error=e.token)
    return outcome_redirect(back, success="folder-created")


# --- view folder contents ---
@router.get("/folder/{folder_id}", response_class=HTMLResponse)
def view_folder(
    request: Request,
    folder_id: str,
    success: str | None = None,
    error: str | None = None,
    user: User = Depends(current_user),
    namespace: Namespace = Depends(get_namespace),
):
    try:
        folder, listing = namespace.list_folder(user, folder_id)
    except NotFoundError as e:
        return outcome_redirect("/dashboard", error=e.token)

    return templates.TemplateResponse(
        request,
        "folder.html",
        {
            "user": user,
            "folder": folder,
            "parent": folder,
            "files": listing.files,
            "folders": listing.folders,
            "success": success,
            "error": error,
        },
    )


# --- move a folder under another one ("" moves it to the root) ---
@router.post("/folder/{folder_id}/move")
def move_folder(
    folder_id: str,
    parent_id: str = Form(""),
    user: User = Depends(current_user),
    namespace: Namespace = Depends(get_namespace),
):
    try:
        namespace.move_folder(user, folder_id, parent_id or None)
    except NotFoundError as e:
        return outcome_redirect("/dashboard", error=e.token)
    except FileVaultError as e:
        return outcome_redirect(folder_path(folder_id), error=e.token)
    return outcome_redirect(folder_path(folder_id), success="folder-moved")


# --- delete a folder and everything below it ---
@router.post("/folder/{folder_id}/delete")
def delete_folder(
    folder_id: str,
    user: User = Depends(current_user),
    namespace: Namespace = Depends(get_namespace),
):
    try:
        folder = namespace.get_folder(user, folder_id)
        namespace.delete_folder(user, folder_id)
    except FileVaultError as e:
        return outcome_redirect("/dashboard", error=e.token)
    return outcome_redirect(folder_path(folder.parent_id), success="folder-deleted")
