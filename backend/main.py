import logging
import math
import os

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

try:
    from backend import app_context
    from backend.app.routes.payfast import router as payfast_router
    from backend.app.routes.subscriptions import router as subscriptions_router
    from backend.app.services.identity import JWTIdentityVerifier
except ModuleNotFoundError as exc:
    if exc.name != "backend":
        raise
    import app_context  # type: ignore[no-redef]
    from app.routes.payfast import router as payfast_router  # type: ignore[no-redef]
    from app.routes.subscriptions import router as subscriptions_router  # type: ignore[no-redef]
    from app.services.identity import JWTIdentityVerifier  # type: ignore[no-redef]


load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


DB_CFG = dict(
    host=os.getenv("DB_HOST", "127.0.0.1"),
    port=int(os.getenv("DB_PORT", "5432")),
    dbname=os.getenv("DB_NAME", "sitebuilder_db"),
    user=os.getenv("DB_USER", "sitebuilder_server"),
    password=os.getenv("DB_PASSWORD", "sitebuilder_pass"),
    connect_timeout=_parse_connect_timeout(os.getenv("DB_CONNECT_TIMEOUT", "5")),
)

# Restricted role subject to row-level security on the entitlements table.
SELF_SERVICE_DB_CFG = dict(
    DB_CFG,
    user=os.getenv("SELF_SERVICE_DB_USER", "sitebuilder_client"),
    password=os.getenv("SELF_SERVICE_DB_PASSWORD", "sitebuilder_client_pass"),
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]


def get_conn():
    return psycopg2.connect(**DB_CFG)


def get_self_service_conn():
    return psycopg2.connect(**SELF_SERVICE_DB_CFG)


app_context.configure(
    get_conn=get_conn,
    get_self_service_conn=get_self_service_conn,
    identity_verifier=JWTIdentityVerifier(JWT_SECRET_KEY, algorithms=(JWT_ALGORITHM,)),
)

app = FastAPI(title="Site Builder Billing API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(payfast_router)
app.include_router(subscriptions_router)


# run: uvicorn backend.main:app --host 127.0.0.1 --port 8000 --reload


@app.get("/api/health")
def health():
    return {"ok": True}
