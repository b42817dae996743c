from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from settlement.api import api_router
from settlement.core.config import get_settings

app = FastAPI(title="receipt-settlement")


# ----------------------------
# Healthcheck (for Docker)
# ----------------------------
@app.get("/health", include_in_schema=False)
def health() -> PlainTextResponse:
    return PlainTextResponse("ok")


# ----------------------------
# CORS
# ----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------------
# API routers
# ----------------------------
# IMPORTANT: nginx проксирует /api/ -> http://backend:8000/api/
# Поэтому все роутеры вешаем под /api
app.include_router(api_router, prefix="/api")
