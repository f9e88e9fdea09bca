"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import places, preferences, proxy
from db import check_database, init_db


class PrivateNetworkAccessMiddleware(BaseHTTPMiddleware):
    """Answer Private Network Access preflights so a hosted frontend can reach a local backend."""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=204)
            response.headers["Access-Control-Allow-Origin"] = "*"
            response.headers["Access-Control-Allow-Methods"] = "*"
            response.headers["Access-Control-Allow-Headers"] = "*"
            response.headers["Access-Control-Allow-Private-Network"] = "true"
            return response

        response = await call_next(request)
        response.headers["Access-Control-Allow-Private-Network"] = "true"
        return response


app = FastAPI(
    title="Places Tracker API",
    description="API for tracking places to eat and importing them from map lists",
    version="0.1.0",
)

# Private Network Access middleware (must be before CORS)
app.add_middleware(PrivateNetworkAccessMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(places.router, prefix="/api/places", tags=["places"])
app.include_router(preferences.router, prefix="/api/preferences", tags=["preferences"])
app.include_router(proxy.router, prefix="/api", tags=["proxy"])


@app.on_event("startup")
def startup_event():
    """Initialize database tables on startup."""
    init_db()


@app.get("/")
async def root():
    return {"status": "ok", "service": "Places Tracker API"}


@app.get("/api/health")
async def health():
    """Health check endpoint, including a database probe."""
    return {
        "status": "OK",
        "timestamp": datetime.utcnow().isoformat(),
        "database": check_database(),
    }
