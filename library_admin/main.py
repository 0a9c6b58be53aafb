import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.database import create_db_and_tables
from .core.exceptions import ServiceError
from .core.logging_setup import setup_logging
from .api.auth import router as auth_router
from .api.invitations import router as invitation_router
from .api.users import router as user_router
from .services.login_guard import login_guards

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    create_db_and_tables()
    try:
        yield
    finally:
        # Pending unlock timers must not outlive the app
        login_guards.close()


app = FastAPI(
    title="Library Admin API",
    description="Admin invitations and guarded sign-in for the public library catalog",
    version="0.1.0",
    lifespan=lifespan,
)


# CORS headers go on every response, errors included, whatever the Origin
@app.middleware("http")
async def add_cors_headers(request: Request, call_next):
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        response = JSONResponse({"error": "Internal server error"}, status_code=500)
    response.headers.update(CORS_HEADERS)
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid input") if errors else "Invalid input"
    return JSONResponse({"error": message}, status_code=400)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.get("/api/health", tags=["Health Check"])
async def health_check():
    return {"status": "ok", "message": "Library Admin API is running"}

app.include_router(auth_router, prefix="/api/auth", tags=["Authentication"])
app.include_router(user_router, prefix="/api/users", tags=["Users"])
app.include_router(invitation_router, prefix="/api", tags=["Admin Invitations"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("library_admin.main:app", host="0.0.0.0", port=8000, reload=True)
