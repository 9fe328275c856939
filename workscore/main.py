# workscore/main.py
import logging

from fastapi import FastAPI
from sqlalchemy import exc as sa_exc

from workscore.config import settings
from workscore.database import engine, Base
from workscore.models import registry  # noqa: F401  registers every table on Base.metadata
from workscore.routers import cron, intelligence, reports, scoring

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Workscore - Performance Scoring & Intelligence", version="1.0")

# Include Routers
app.include_router(scoring.router)
app.include_router(reports.router)
app.include_router(intelligence.router)
app.include_router(cron.router)


# Create DB Tables for local runs; deployed databases are migrated with Alembic
@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "already exists" in msg:
                logging.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise


@app.get("/")
def read_root():
    return {"message": "Workscore is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("workscore.main:app", host="0.0.0.0", port=8000, reload=True)
