import logging

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.api.documents import router as documents_router
from app.api.public import router as public_router
from app.config import settings
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.services.workflow import Workflow, build_workflow
from app.services.workflow_config import WorkflowConfig

logger = logging.getLogger(__name__)


def create_app(workflow: Workflow | None = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title="SignFlow API")
    app.state.workflow = workflow or build_workflow(WorkflowConfig.from_settings(settings))
    app.add_middleware(ObservabilityMiddleware)
    register_error_handlers(app)

    app.include_router(documents_router, prefix="/api/v1")
    app.include_router(public_router)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics():
        data = generate_latest()
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
