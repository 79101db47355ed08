from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backstage.core.config import settings
from backstage.core.errors import AccessCoreError
from backstage.core.logging import configure_logging
from backstage.routers import (
    access,
    access_requests,
    auth,
    entities,
    event_invitations,
    invitations,
    me,
    personas,
    zones,
)


def create_app() -> FastAPI:
    configure_logging(settings)

    app = FastAPI(title="Backstage API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AccessCoreError)
    async def access_core_error_handler(request: Request, exc: AccessCoreError):
        return JSONResponse(status_code=exc.http_status, content={"detail": exc.message, "code": exc.code})

    app.include_router(auth.router)
    app.include_router(me.router)
    app.include_router(entities.router)
    app.include_router(personas.router)
    app.include_router(invitations.router)
    app.include_router(event_invitations.router)
    app.include_router(access_requests.router)
    app.include_router(zones.router)
    app.include_router(access.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
