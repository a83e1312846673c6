import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from craftfolio.routes import (
    admin_routes,
    application_routes,
    auth_routes,
    contact_routes,
    job_routes,
    portfolio_routes,
    profile_routes,
    view_routes,
)
from craftfolio.routes.deps import get_backend

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    backend = app.dependency_overrides.get(get_backend, get_backend)()
    backend.create_all()
    logger.info("Craftfolio store ready")
    yield


app = FastAPI(title="Craftfolio Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"message": "Craftfolio backend is running!"}


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(auth_routes.router)
app.include_router(view_routes.router)
app.include_router(portfolio_routes.router)
app.include_router(job_routes.router)
app.include_router(application_routes.router)
app.include_router(profile_routes.router)
app.include_router(contact_routes.router)
app.include_router(admin_routes.router)
