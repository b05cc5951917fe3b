from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from web.backend.deps import get_config

app = FastAPI(title="Radio Dial API", version="1.0.0")

# CORS: ALLOWED_ORIGINS env var overrides the [web] config section
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().web.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from web.backend.routers import feeds, nowplaying

app.include_router(nowplaying.router, prefix="/api", tags=["nowplaying"])
app.include_router(feeds.router, prefix="/api", tags=["feeds"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
