import os
from fastapi import FastAPI
from app.db import Base, engine
import app.models  # noqa: F401 ensure models are imported so tables are known
from app.api.routes import router as api_router
from app.utils import logger

# create FastAPI instance
app = FastAPI(title="Property Search")
app.include_router(api_router)


@app.on_event("startup")
def on_startup():
    # Ensure database tables are created on startup
    Base.metadata.create_all(bind=engine)
    if os.getenv("SCHEDULER_ENABLED", "1") == "1":
        from app.scheduler import start_scheduler
        start_scheduler()
    logger.info("Property search service started")


@app.on_event("shutdown")
def on_shutdown():
    from app.scheduler import scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)
