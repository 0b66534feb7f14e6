import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from statcounter.core.config import settings
from statcounter.routers import counters, health, ratings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(health.router)
app.include_router(counters.router, prefix=settings.API_V1_PREFIX)
app.include_router(ratings.router, prefix=settings.API_V1_PREFIX)
