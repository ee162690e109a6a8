"""
Main application entry point for the Contact Manager.

This module initializes the FastAPI application, sets up logging,
middleware and exception handlers, creates the database tables and the
default account at startup, and includes routers for authentication,
contacts and the site pages.

Modules:
- FastAPI: Web framework
- CORSMiddleware: Middleware for handling CORS
- contact_manager.session: Server-side sessions
- contact_manager.database: Database engine and tables
- contact_manager.auth: Authentication router
- contact_manager.contacts: Contacts router
- contact_manager.pages: Home page, JSON API and health check
- contact_manager.core: Application settings
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger

from contact_manager import contacts, crud, pages
from contact_manager.auth import router as auth_router
from contact_manager.core import get_settings
from contact_manager.database import SessionLocal, init_db
from contact_manager.errors import setup_exception_handlers
from contact_manager.log import log_requests, setup_logging
from contact_manager.session import SessionMiddleware
from contact_manager.templating import STATIC_DIR

settings = get_settings()
setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables and seed the default account before serving requests.
    """
    init_db()
    logger.info("Database initialized successfully")
    db = SessionLocal()
    try:
        crud.ensure_default_user(db)
    finally:
        db.close()
    yield


# Initialize FastAPI application
app = FastAPI(title="Contact Manager", lifespan=lifespan)

# Configure middleware; the last one added runs first
app.add_middleware(SessionMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(log_requests)

setup_exception_handlers(app)

# Include routers for application areas
app.include_router(pages.router)
app.include_router(auth_router)
app.include_router(contacts.router)

app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


if __name__ == "__main__":
    logger.info(f"Contact Manager running on port {settings.PORT}")
    logger.info(f"Default login: {settings.DEFAULT_USERNAME} / {settings.DEFAULT_PASSWORD}")
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
