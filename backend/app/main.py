from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.middleware.exceptions import register_exception_handlers
from app.routers import activities, bids, health, jobs, payments, teams

app = FastAPI(
    title="WorkCrop",
    description="Farm labour job matching & bidding engine",
    version="0.1.0",
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(activities.router, prefix="/api/activities", tags=["activities"])
app.include_router(teams.router, prefix="/api/teams", tags=["teams"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
app.include_router(bids.router, prefix="/api/bids", tags=["bids"])
app.include_router(payments.router, prefix="/api/payments", tags=["payments"])
