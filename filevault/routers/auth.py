import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from filevault.core.errors import AuthError, DuplicateError, ValidationError
from filevault.models.user import User
from filevault.routers.deps import get_identity, optional_user, safe_return_to, start_session, templates
from filevault.services.identity import IdentityManager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/register", response_class=HTMLResponse)
def register_page(request: Request):
    return templates.TemplateResponse(request, "register.html", {"error": None})


@router.post("/register")
def register(
    request: Request,
    email: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    identity: IdentityManager = Depends(get_identity),
):
    try:
        user = identity.register(email.strip(), username.strip(), password)
    except DuplicateError:
        return templates.TemplateResponse(request, "register.html", {"error": "User already exists!"})
    except ValidationError:
        return templates.TemplateResponse(request, "register.html", {"error": "Email and password are required."})

    # Auto login
    start_session(request, user)
    return RedirectResponse(url="/dashboard", status_code=303)


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    return templates.TemplateResponse(request, "login.html", {"error": None})


@router.post("/login")
def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    identity: IdentityManager = Depends(get_identity),
):
    try:
        user = identity.authenticate(email.strip(), password)
    except AuthError as e:
        # The page never says which of the two went wrong
        logger.info("Failed login: %s", type(e).__name__)
        return templates.TemplateResponse(request, "login.html", {"error": "Invalid email or password."})

    # Redirect to where they were trying to go, or dashboard
    redirect_to = safe_return_to(request.session.get("return_to"))
    start_session(request, user)
    return RedirectResponse(url=redirect_to, status_code=303)


@router.get("/logout")
def logout(request: Request, user: User | None = Depends(optional_user)):
    request.session.clear()
    return RedirectResponse(url="/", status_code=303)
