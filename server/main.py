from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from config.config import FRONTEND_URL
from config.log import configure_logging, get_logger
from database.DB import Database
from helpers.TimeUtils import utcnow
from helpers.TokenAuthenticator import build_authenticator
from routes import AuthRouter, EventRouter, RegistrationRouter, UserRouter, MaintenanceRouter
from services.Exceptions import HubError

''' The backend API Endpoints setup '''

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: a database or authenticator placed on app.state beforehand (tests) is reused
    db = getattr(app.state, "db", None)
    owns_db = db is None
    if owns_db:
        db = Database()
        db.connect()
        app.state.db = db
    await db.ensure_indexes()

    if getattr(app.state, "authenticator", None) is None:
        app.state.authenticator = build_authenticator()
    logger.info("Application started", database=db.database_name)

    yield

    # Shutdown
    if owns_db:
        db.close()
        app.state.db = None
    logger.info("Application shutting down")


app = FastAPI(lifespan=lifespan)

allowed_origins = [FRONTEND_URL]
if FRONTEND_URL != "http://localhost:5173":
    allowed_origins.append("http://localhost:5173")

logger.info("Configuring CORS middleware", allowed_origins=allowed_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600,
)


@app.exception_handler(HubError)
async def hub_error_handler(request: Request, exc: HubError):
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.classification, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"message": "Something went wrong!", "error": "internal_error"})


@app.get('/health')
async def health_check():
    return JSONResponse(content={"status": "healthy", "timestamp": utcnow().isoformat()})


# Include routers
app.include_router(AuthRouter.router, prefix="/api", tags=["Authentication"])
app.include_router(EventRouter.router, prefix="/api/events", tags=["Events"])
app.include_router(RegistrationRouter.router, prefix="/api/registrations", tags=["Registrations"])
app.include_router(UserRouter.router, prefix="/api/users", tags=["Users"])
app.include_router(MaintenanceRouter.router, prefix="/api/maintenance", tags=["Maintenance"])
