"""
FastAPI application for the regulatory news scanner.
"""

from dotenv import load_dotenv
from fastapi import FastAPI

from regscan import __version__
from regscan.web.lifespan import lifespan

# Load .env before anything reads the environment
load_dotenv()

app = FastAPI(
    title="Regulatory News Scanner",
    description="Harvests, deduplicates and classifies regulatory and legal news",
    version=__version__,
    lifespan=lifespan,
)

from regscan.web.health import router as health_router
from regscan.web.routes import feedback, scan, sources

app.include_router(health_router)
app.include_router(scan.router)
app.include_router(feedback.router)
app.include_router(sources.router)
