"""
UNISTOCK - Backend API
Integração de marketplaces (Mercado Livre, Shopee, Amazon, Shopify, Magalu)
para gestão de estoque e pedidos
"""
import logging
import time
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before settings are read
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from unistock.core.config import settings
from unistock.core.database import get_db_connection_with_retry
from unistock.api import (
    barcodes,
    competitors,
    finance,
    forecast,
    integrations,
    listings,
    notifications,
    orders,
    reports,
    tracking,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI application
app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION
)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"https://.*\.vercel\.app",
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

app.include_router(listings.router)
app.include_router(integrations.router)
app.include_router(competitors.router)
app.include_router(forecast.router)
app.include_router(finance.router)
app.include_router(tracking.router)
app.include_router(orders.router)
app.include_router(notifications.router)
app.include_router(reports.router)
app.include_router(barcodes.router)


@app.get("/")
async def root():
    return {
        "message": "UNISTOCK API",
        "status": "online",
        "version": settings.API_VERSION
    }


@app.get("/health")
def health():
    """Health check for monitoring - tests database connectivity"""
    start_time = time.time()

    db_status = "unknown"
    db_latency_ms = None
    db_error = None

    try:
        conn = get_db_connection_with_retry(max_retries=1, retry_delay=0.5)
        cursor = conn.cursor()

        db_start = time.time()
        cursor.execute("SELECT 1")
        cursor.fetchone()
        db_latency_ms = round((time.time() - db_start) * 1000, 2)

        cursor.close()
        conn.close()
        db_status = "connected"
    except Exception as e:
        db_status = "disconnected"
        db_error = str(e)

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "service": "unistock-api",
        "version": settings.API_VERSION,
        "database": {
            "status": db_status,
            "latency_ms": db_latency_ms,
            "error": db_error
        },
        "total_latency_ms": round((time.time() - start_time) * 1000, 2)
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("unistock.main:app", host=settings.API_HOST, port=settings.API_PORT,
                reload=settings.API_DEBUG)
