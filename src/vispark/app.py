import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vispark.config import settings
from vispark.errors import install_error_handlers
from vispark.routes.admin import router as admin_router
from vispark.routes.notifications import router as notifications_router
from vispark.routes.push import router as push_router
from vispark.routes.subscriptions import router as subscriptions_router
from vispark.routes.summary import router as summary_router
from vispark.routes.transcript import router as transcript_router
from vispark.routes.visparks import router as visparks_router
from vispark.routes.youtube import router as youtube_router

CORS_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Vispark API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=CORS_HEADERS,
    )
    install_error_handlers(app)

    app.include_router(transcript_router)
    app.include_router(summary_router)
    app.include_router(visparks_router)
    app.include_router(youtube_router)
    app.include_router(subscriptions_router)
    app.include_router(push_router)
    app.include_router(notifications_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
