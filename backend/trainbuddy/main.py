"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from trainbuddy.config import settings
from trainbuddy.database import Base, engine

# Import routers
from trainbuddy.routers import auth, users, trains, groups, messages, reminders

# Import all models so Base.metadata knows about them
from trainbuddy.models.document import Document                  # noqa: F401
from trainbuddy.models.credential import Credential, AuthToken   # noqa: F401

app = FastAPI(
    title="Train Buddy",
    description="Commuter coordination: find your train, travel in groups, chat on the way",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(trains.router, prefix="/api/trains", tags=["Trains"])
app.include_router(groups.router, prefix="/api/groups", tags=["Groups"])
app.include_router(messages.router, prefix="/api/groups", tags=["Chat"])
app.include_router(reminders.router, prefix="/api/reminders", tags=["Reminders"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
