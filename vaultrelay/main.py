# vaultrelay/main.py

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from vaultrelay.api import relay
from vaultrelay.core.circuit_breaker import limiter
from vaultrelay.utils.logger import setup_logger


def create_app() -> FastAPI:
    app = FastAPI(
        title="VaultRelay",
        version="0.1.0",
        description="Ciphertext-only store-and-forward relay for shared-key chat rooms"
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(relay.router, tags=["Relay"])

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


setup_logger()

app = create_app()
