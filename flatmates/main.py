import logging
import os

import pymongo
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database

from flatmates import config
from flatmates.db import close_client, ensure_indexes, get_db
from flatmates.exceptions import FlatmatesError, StoreError, ValidationError
from flatmates.routes import auth, messages, properties, users
from flatmates.utils.uploads import configure_cloudinary

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title="Flatmates API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(properties.router, prefix="/api/properties", tags=["properties"])
app.include_router(messages.router, prefix="/api/messages", tags=["messages"])

os.makedirs(config.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")


@app.on_event("startup")
def startup_db_client():
    problems = config.insecure_settings()
    if problems:
        if config.ENVIRONMENT == "production" and "JWT_SECRET" in problems:
            raise RuntimeError("JWT_SECRET must be set in production")
        logger.warning("Running with insecure or missing settings: %s", ", ".join(problems))

    ensure_indexes(get_db())
    if configure_cloudinary():
        logger.info("Configured Cloudinary account %s", config.CLOUDINARY_CLOUD_NAME)


@app.on_event("shutdown")
def shutdown_db_client():
    close_client()


@app.exception_handler(FlatmatesError)
async def flatmates_exception_handler(request: Request, exc: FlatmatesError):
    if isinstance(exc, ValidationError):
        return JSONResponse(status_code=exc.status_code, content={"errors": exc.errors})
    if isinstance(exc, StoreError):
        # Already logged where the store call failed
        return PlainTextResponse("Server error", status_code=500)
    return JSONResponse(status_code=exc.status_code, content={"msg": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", ()))
        location = loc.pop(0) if loc and loc[0] in ("body", "query", "path", "header") else "body"
        ctx_error = (error.get("ctx") or {}).get("error")
        errors.append({
            "msg": str(ctx_error) if ctx_error else error.get("msg"),
            "param": ".".join(str(part) for part in loc),
            "location": location,
        })
    return JSONResponse(status_code=400, content={"errors": errors})


@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return PlainTextResponse("Server error", status_code=500)


@app.get("/health")
def health_check(db: Database = Depends(get_db)):
    try:
        db.command("ping")
    except pymongo.errors.PyMongoError:
        logger.exception("Health check could not reach MongoDB")
        return JSONResponse(content={"status": "error", "database": "disconnected"}, status_code=500)
    return {"status": "ok", "database": "connected"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("flatmates.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
