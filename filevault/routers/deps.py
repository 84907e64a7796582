from pathlib import Path
from urllib.parse import urlencode

from fastapi import Depends, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from filevault.core.errors import LoginRequired
from filevault.models.user import User
from filevault.services.identity import IdentityManager
from filevault.services.namespace import Namespace

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

# Outcome tokens and the text shown for them
templates.env.globals["messages"] = {
    "uploaded": "File uploaded.",
    "deleted": "File deleted.",
    "folder-created": "Folder created.",
    "folder-moved": "Folder moved.",
    "folder-deleted": "Folder deleted.",
    "no-file": "Please choose a file to upload.",
    "file-not-found": "File not found.",
    "folder-not-found": "Folder not found.",
    "invalid-folder-name": "Folder name cannot be empty.",
    "invalid-folder-move": "A folder cannot be moved into itself.",
    "file-too-large": "File is too large.",
    "file-type-not-allowed": "This file type is not allowed.",
    "storage-error": "Something went wrong while saving, please try again.",
}


def get_identity(request: Request) -> IdentityManager:
    return request.app.state.identity


def get_namespace(request: Request) -> Namespace:
    return request.app.state.namespace


def optional_user(request: Request, identity: IdentityManager = Depends(get_identity)) -> User | None:
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    user = identity.get_user(user_id)
    if user is None:
        # Session outlived its user record
        request.session.pop("user_id", None)
    return user


def current_user(user: User | None = Depends(optional_user)) -> User:
    if user is None:
        raise LoginRequired()
    return user


def start_session(request: Request, user: User) -> None:
    request.session.pop("return_to", None)
    request.session["user_id"] = user.id


def safe_return_to(target: str | None, default: str = "/dashboard") -> str:
    # Only local paths, "//host" would leave the site
    if not target or not target.startswith("/") or target.startswith("//"):
        return default
    return target


def outcome_redirect(path: str, success: str | None = None, error: str | None = None) -> RedirectResponse:
    params = {k: v for k, v in (("success", success), ("error", error)) if v}
    url = f"{path}?{urlencode(params)}" if params else path
    return RedirectResponse(url=url, status_code=303)


def folder_path(folder_id: str | None) -> str:
    return f"/folder/{folder_id}" if folder_id else "/dashboard"
