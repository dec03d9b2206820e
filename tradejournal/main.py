import logging
from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from tradejournal.config import LOGGING_DATE_FORMAT, LOGGING_FORMAT, LOGGING_LEVEL
from tradejournal.db import db
from tradejournal.db_init import init_db
from tradejournal.services.scheduler import scheduler_service
from tradejournal.routes import (
    account, analytics, auth, broker, status, tags, trades
)


# APScheduler and the scheduler service log through stdlib logging
logging.basicConfig(level=LOGGING_LEVEL, format=LOGGING_FORMAT, datefmt=LOGGING_DATE_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting trade journal backend...")
    try:
        await db.connect()
        await init_db()
        scheduler_service.start()
        logger.info("✅ Application startup complete")
    except Exception as e:
        logger.error(f"❌ Error during startup: {e}")
    
    yield

    logger.info("🛑 Stopping trade journal backend")
    try:
        if scheduler_service.is_running:
            scheduler_service.stop()
        await db.disconnect()
        logger.info("✅ DB disconnected")
    except Exception as e:
        logger.error(f"❌ Error during shutdown: {e}")

app = FastAPI(title="Trade Journal", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(account.router)
app.include_router(trades.router)
app.include_router(tags.router)
app.include_router(analytics.router)
app.include_router(broker.router)
app.include_router(status.router)

@app.get("/", response_class=HTMLResponse)
async def home():
    html_content = """
    <html>
        <head>
            <title>Trade Journal Backend Service</title>
        </head>
        <body>
            <h1>Welcome to Trade Journal Backend Service</h1>
        </body>
    </html>
    """
    return html_content
