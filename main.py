import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatline.api.v1 import ai, auth, chat, realtime, users
from chatline.core.config import settings
from chatline.core.logging import configure_logging
from chatline.middleware.logging import LoggingMiddleware


def create_app() -> FastAPI:
    configure_logging(logging.DEBUG if settings.DEBUG else logging.INFO)

    app = FastAPI(
        title="Chatline Messaging API",
        version="0.1.0",
        debug=settings.DEBUG,
    )

    # CORS middleware - must be added before other middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Middleware
    app.add_middleware(LoggingMiddleware)

    # API routes
    prefix = settings.API_V1_PREFIX
    app.include_router(auth.router, prefix=prefix)
    app.include_router(users.router, prefix=prefix)
    app.include_router(chat.router, prefix=prefix)
    app.include_router(ai.router, prefix=prefix)
    app.include_router(realtime.router, prefix=prefix)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        return {"status": "ok", "environment": settings.ENVIRONMENT}

    return app


app = create_app()


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=settings.DEBUG,
    )
