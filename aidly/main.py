from fastapi import FastAPI

from .api import business_hours, reports
from .core.logging import setup_logging
from .db.database import init_db

app = FastAPI(title="AidlY Analytics")

@app.on_event("startup")
async def on_startup():
    setup_logging()
    await init_db()

@app.get("/health")
async def health():
    return {"ok": True}

# API routers
app.include_router(reports.router, prefix="/api")
app.include_router(business_hours.router, prefix="/api")
