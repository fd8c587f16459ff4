import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__, utils
from . import database as db
from .cleanup import cleanup_orphans
from .controller import AccessController
from .errors import register_error_handlers
from .ratelimit import limiter
from .routes.admin import AdminRouter
from .routes.drops import DropRouter
from .security import PasswordHasher
from .sessions import TokenIssuer
from .storage import StorageGuard

# Configuration from environment variables
VERSION = __version__
MAX_RETRIES = 5
MAX_FILE_SIZE = utils.parse_file_size(os.getenv("MAX_FILE_SIZE", "50mb"))
ADMIN_MAX_FILE_SIZE = utils.parse_file_size(os.getenv("ADMIN_MAX_FILE_SIZE", "50mb"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
JWT_SECRET = os.getenv("JWT_SECRET")
ADMIN_TOKEN_TTL = utils.parse_time(os.getenv("ADMIN_TOKEN_TTL", "24h"))
DOWNLOAD_TOKEN_TTL = utils.parse_time(os.getenv("DOWNLOAD_TOKEN_TTL", "15m"))
LEGACY_PASSWORD_DOWNLOADS = utils.parse_bool(os.getenv("LEGACY_PASSWORD_DOWNLOADS"))
CLEANUP_INTERVAL = int(os.getenv("CLEANUP_INTERVAL", "3600"))
ORPHAN_MAX_AGE = utils.parse_time(os.getenv("ORPHAN_MAX_AGE", "1d"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
FILES_DIR = db.FILES_DIR

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

storage = StorageGuard(FILES_DIR, MAX_FILE_SIZE)
controller = AccessController(
    storage=storage,
    hasher=PasswordHasher(BCRYPT_ROUNDS),
    tokens=TokenIssuer(JWT_SECRET, admin_ttl=ADMIN_TOKEN_TTL, download_ttl=DOWNLOAD_TOKEN_TTL),
    max_retries=MAX_RETRIES,
    admin_max_file_size=ADMIN_MAX_FILE_SIZE,
    legacy_password_downloads=LEGACY_PASSWORD_DOWNLOADS,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialise the SQLite database
    await db.init_db()
    storage.files_dir.mkdir(parents=True, exist_ok=True)
    if LEGACY_PASSWORD_DOWNLOADS:
        logger.warning("Legacy password download tokens are enabled; passwords will appear in download URLs")

    # Start background orphan sweep
    cleanup_task = asyncio.create_task(cleanup_orphans(storage.files_dir, CLEANUP_INTERVAL, ORPHAN_MAX_AGE))

    yield

    # Cancel cleanup task on shutdown
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass


app = FastAPI(title="lockdrop", version=VERSION, lifespan=lifespan)
app.state.limiter = limiter
app.add_middleware(CORSMiddleware, allow_origins=CORS_ORIGINS, allow_credentials=False, allow_methods=["*"], allow_headers=["*"])
register_error_handlers(app)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": VERSION}


drop_router = DropRouter(controller)
admin_router = AdminRouter(controller)

# Admin routes first, the /{short_id} page route last
app.include_router(admin_router.router)
app.include_router(drop_router.router)
app.include_router(drop_router.pages)
