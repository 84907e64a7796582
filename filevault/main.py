import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from starlette.middleware.sessions import SessionMiddleware

from filevault.core.config import Settings, get_settings
from filevault.core.errors import FileVaultError, LoginRequired
from filevault.core.logging import setup_logging
from filevault.models.database import make_engine
from filevault.models.user import User
from filevault.routers import auth, files, folders
from filevault.routers.deps import optional_user, templates
from filevault.services.blobs import BlobManager, make_backend
from filevault.services.identity import IdentityManager, PasswordVerifier
from filevault.services.metadata import MetadataStore
from filevault.services.namespace import Namespace

logger = logging.getLogger(__name__)


async def login_required_handler(request: Request, exc: LoginRequired):
    # Store the original URL they were trying to access, a form post cannot be replayed
    if request.method == "GET":
        target = request.url.path
        if request.url.query:
            target += f"?{request.url.query}"
        request.session["return_to"] = target
    return RedirectResponse(url="/login", status_code=303)


async def filevault_error_handler(request: Request, exc: FileVaultError):
    return PlainTextResponse(exc.token, status_code=exc.status_code)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)
    settings.data_dir.mkdir(parents=True, exist_ok=True)

    store = MetadataStore(make_engine(settings.database_url))
    blobs = BlobManager(make_backend(settings), settings.max_upload_bytes, settings.allowed_extensions)

    app = FastAPI(title="filevault")
    app.state.settings = settings
    app.state.store = store
    app.state.identity = IdentityManager(store, PasswordVerifier(settings.password_hash_method))
    app.state.namespace = Namespace(store, blobs)

    # include our routers
    app.include_router(auth.router)
    app.include_router(files.router)
    app.include_router(folders.router)

    app.add_exception_handler(LoginRequired, login_required_handler)
    app.add_exception_handler(FileVaultError, filevault_error_handler)

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        session_cookie="filevault_session",
        max_age=settings.session_max_age,
        same_site="lax",
        https_only=settings.https_only,
    )

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request, user: User | None = Depends(optional_user)):
        if user:
            return RedirectResponse(url="/dashboard", status_code=303)
        return templates.TemplateResponse(request, "home.html", {})

    logger.info("filevault ready, blobs stored via %s backend", settings.blob_backend)
    return app
