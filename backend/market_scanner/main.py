from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from market_scanner.api.scan import router as scan_router
from market_scanner.config import settings

app = FastAPI(title=settings.app_name, version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/healthz")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(scan_router)
