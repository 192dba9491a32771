# lpg_api/main.py
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth_provider import AuthProvider, close_auth_provider, get_auth_provider
from .config import get_settings
from .core import SignInIn, SignUpIn
from .database import KVStore, close_store, get_store
from .errors import ApiError
from .handlers import (
    create_product_logic, delete_product_logic, delete_user_logic, init_logic,
    list_products_logic, list_users_logic, session_logic, signin_logic,
    signout_logic, signup_logic, update_product_logic, update_user_logic,
)
from .log import get_logger, log_requests, setup_logging

settings = get_settings()
setup_logging(level=settings.log_level, log_format=settings.log_format)
log = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    log.info("startup", prefix=settings.route_prefix, kv_backend=settings.kv_backend,
             auth_backend=settings.auth_backend)
    yield
    await close_store()
    await close_auth_provider()


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(log_requests)


# ---------------------------
# Error rendering: always {"error": message}
# ---------------------------
@app.exception_handler(ApiError)
async def api_error_handler(_: Request, exc: ApiError):
    return JSONResponse(exc.to_body(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request body"
    return JSONResponse({"error": f"Invalid request: {message}"}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_error_handler(_: Request, exc: Exception):
    log.error("unhandled_error", error=str(exc), exc_info=exc)
    return JSONResponse({"error": f"Request failed: {exc}"}, status_code=500)


# ---------------------------
# Request helpers
# ---------------------------
def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """'Bearer <token>' -> '<token>'; anything else -> None."""
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or not parts[1].strip():
        return None
    return parts[1].strip()


router = APIRouter(prefix=settings.route_prefix)


# ---------------------------
# Auth endpoints
# ---------------------------
@router.post("/auth/signup")
async def signup(payload: SignUpIn, store: KVStore = Depends(get_store),
                 auth: AuthProvider = Depends(get_auth_provider)):
    return await signup_logic(store, auth, payload)


@router.post("/auth/signin")
async def signin(payload: SignInIn, store: KVStore = Depends(get_store),
                 auth: AuthProvider = Depends(get_auth_provider)):
    return await signin_logic(store, auth, payload)


@router.get("/auth/session")
async def session(token: Optional[str] = Depends(bearer_token), store: KVStore = Depends(get_store),
                  auth: AuthProvider = Depends(get_auth_provider)):
    return await session_logic(store, auth, token)


@router.post("/auth/signout")
async def signout(token: Optional[str] = Depends(bearer_token), auth: AuthProvider = Depends(get_auth_provider)):
    return await signout_logic(auth, token)


# ---------------------------
# Product endpoints
# ---------------------------
@router.get("/products")
async def list_products(store: KVStore = Depends(get_store)):
    return await list_products_logic(store)


@router.post("/products")
async def add_product(payload: Optional[Dict[str, Any]] = Body(None),
                      token: Optional[str] = Depends(bearer_token), store: KVStore = Depends(get_store),
                      auth: AuthProvider = Depends(get_auth_provider)):
    return await create_product_logic(store, auth, token, payload)


@router.put("/products/{product_id}")
async def update_product(product_id: str, payload: Optional[Dict[str, Any]] = Body(None),
                         token: Optional[str] = Depends(bearer_token), store: KVStore = Depends(get_store),
                         auth: AuthProvider = Depends(get_auth_provider)):
    return await update_product_logic(store, auth, token, product_id, payload)


@router.delete("/products/{product_id}")
async def delete_product(product_id: str, token: Optional[str] = Depends(bearer_token),
                         store: KVStore = Depends(get_store), auth: AuthProvider = Depends(get_auth_provider)):
    return await delete_product_logic(store, auth, token, product_id)


# ---------------------------
# User administration (admin only)
# ---------------------------
@router.get("/users")
async def list_users(token: Optional[str] = Depends(bearer_token), store: KVStore = Depends(get_store),
                     auth: AuthProvider = Depends(get_auth_provider)):
    return await list_users_logic(store, auth, token)


@router.put("/users/{user_id}")
async def update_user(user_id: str, payload: Optional[Dict[str, Any]] = Body(None),
                      token: Optional[str] = Depends(bearer_token), store: KVStore = Depends(get_store),
                      auth: AuthProvider = Depends(get_auth_provider)):
    return await update_user_logic(store, auth, token, user_id, payload)


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, token: Optional[str] = Depends(bearer_token),
                      store: KVStore = Depends(get_store), auth: AuthProvider = Depends(get_auth_provider)):
    return await delete_user_logic(store, auth, token, user_id)


# ---------------------------
# Initialization & health
# ---------------------------
@router.post("/init")
async def init_database(store: KVStore = Depends(get_store), auth: AuthProvider = Depends(get_auth_provider)):
    return await init_logic(store, auth)


@router.get("/health")
async def health():
    return {"status": "ok", "message": f"{settings.app_name} is running"}


app.include_router(router)


def run() -> None:
    import uvicorn

    uvicorn.run("lpg_api.main:app", host="0.0.0.0", port=8085, log_config=None)


if __name__ == "__main__":
    run()
