import os
import time
import uuid
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import List
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from config import (
    SERVICE_NAME, HOST, PORT, CORS_ORIGINS, DB_INIT_SCHEMA, LOG_FILE, LOG_LEVEL, PUBLIC_DIR,
)
from database import init_database, close_database, get_db_pool
from models import Outcome, RepositoryResult
from repository import UserRepository
from schemas import UserPayload, UserResponse, MessageResponse

MISSING_FIELDS = "Name and email are required"

# Config logging JSON (niveaux INFO, WARNING, ERROR)
logger.remove()  # Supprime le handler par défaut
logger.add(
    sink=LOG_FILE,
    format="{time:YYYY-MM-DDTHH:mm:ss.SSSZ} | {level} | {message} | {extra}",
    level=LOG_LEVEL,
    serialize=True,  # Format JSON
    rotation="1 day",  # Rotation quotidienne
)

# Prometheus metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "method", "endpoint", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["service", "method", "endpoint"]
)
ERROR_COUNT = Counter(
    "http_errors_total",
    "Total HTTP errors",
    ["service", "endpoint", "error_type"]
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_database(init_schema=DB_INIT_SCHEMA)
    yield
    await close_database()


app = FastAPI(title="Users Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# Middleware pour logger les requests avec correlation ID (observabilité)
@app.middleware("http")
async def log_requests(request: Request, call_next):
    # Generate or propagate correlation ID (trace-id)
    trace_id = request.headers.get("X-Trace-ID", str(uuid.uuid4()))
    start_time = time.time()

    with logger.contextualize(trace_id=trace_id, service=SERVICE_NAME):
        logger.info(f"Request: {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as exc:
            response = await unhandled_exception_handler(request, exc)

        latency = time.time() - start_time
        REQUEST_COUNT.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=request.url.path
        ).observe(latency)

        logger.info(f"Response status: {response.status_code}", latency=latency)

        response.headers["X-Trace-ID"] = trace_id
        return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Toutes les erreurs HTTP sont rendues sous la forme {"error": ...}"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Erreur inattendue: journalisée, jamais exposée au client"""
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=request.url.path, error_type="unhandled").inc()
    return JSONResponse(status_code=500, content={"error": "Server error"})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    if any(err.get("loc", ("",))[0] == "path" for err in exc.errors()):
        message = "Invalid user id"
        error_type = "invalid_id"
    else:
        message = MISSING_FIELDS
        error_type = "validation"
    logger.warning(f"Validation error on {request.url.path}: {message}")
    ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=request.url.path, error_type=error_type).inc()
    return JSONResponse(status_code=400, content={"error": message})


def get_repository() -> UserRepository:
    return UserRepository(get_db_pool())


def check_result(result: RepositoryResult, endpoint: str) -> RepositoryResult:
    """Traduit un résultat du repository en réponse HTTP d'erreur si besoin."""
    if result.outcome is Outcome.SUCCESS:
        return result
    ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=endpoint, error_type=result.outcome.value).inc()
    if result.outcome is Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="User not found")
    if result.outcome is Outcome.CONFLICT:
        raise HTTPException(status_code=400, detail="Email already exists")
    raise HTTPException(status_code=500, detail="Server error")


def require_fields(payload: UserPayload, endpoint: str):
    if not payload.is_complete():
        logger.warning("Rejected user payload with missing fields")
        ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=endpoint, error_type="validation").inc()
        raise HTTPException(status_code=400, detail=MISSING_FIELDS)


@app.get("/metrics")
async def metrics():
    """Endpoint /metrics compatible Prometheus"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy", "service": SERVICE_NAME}


@app.get("/api/users", response_model=List[UserResponse])
async def list_users(repo: UserRepository = Depends(get_repository)):
    logger.info("Fetching all users")
    result = check_result(await repo.list_users(), "/api/users")
    return result.users


@app.get("/api/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, repo: UserRepository = Depends(get_repository)):
    logger.info(f"Fetching user {user_id}")
    result = check_result(await repo.get_user(user_id), "/api/users/{user_id}")
    return result.user


@app.post("/api/users", response_model=UserResponse, status_code=201)
async def create_user(payload: UserPayload, repo: UserRepository = Depends(get_repository)):
    require_fields(payload, "/api/users")
    logger.info(f"Creating user: {payload.name}")
    result = check_result(await repo.create_user(payload.name, payload.email), "/api/users")
    logger.info(f"User created with ID {result.user.id}")
    return result.user


@app.put("/api/users/{user_id}", response_model=UserResponse)
async def update_user(user_id: int, payload: UserPayload, repo: UserRepository = Depends(get_repository)):
    require_fields(payload, "/api/users/{user_id}")
    logger.info(f"Updating user {user_id}")
    result = check_result(
        await repo.update_user(user_id, payload.name, payload.email), "/api/users/{user_id}"
    )
    return result.user


@app.delete("/api/users/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: int, repo: UserRepository = Depends(get_repository)):
    logger.info(f"Deleting user {user_id}")
    check_result(await repo.delete_user(user_id), "/api/users/{user_id}")
    logger.info(f"User {user_id} deleted")
    return {"message": "User deleted successfully"}


@app.get("/", include_in_schema=False)
async def index():
    return FileResponse(os.path.join(PUBLIC_DIR, "index.html"))


# Fichiers statiques (js, css); pas de montage sur "/" pour garder redirect_slashes sur l'API
app.mount("/js", StaticFiles(directory=os.path.join(PUBLIC_DIR, "js")), name="js")
app.mount("/css", StaticFiles(directory=os.path.join(PUBLIC_DIR, "css")), name="css")


if __name__ == "__main__":
    logger.info(f"Starting Users Service on port {PORT}")
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)
