from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import ConfigManager
from core.planner import PlannerController
from core.state import SharedState
from llm.base import AIRouter, BaseAIProvider
from llm.service import NurtureService


def create_app(
    config_manager: ConfigManager,
    state: Optional[SharedState] = None,
    provider: Optional[BaseAIProvider] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    `provider` pins the AI backend (tests pass a fake); by default the
    Gemini provider is built from the current config.
    """

    app = FastAPI(title="Nurture AI Planner", version="1.0.0")

    # CORS for local network access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    state = state or SharedState()
    service = NurtureService(AIRouter(config_manager, provider=provider))

    # Store references for route handlers
    app.state.config_manager = config_manager
    app.state.shared_state = state
    app.state.service = service
    app.state.planner = PlannerController(state.planner, service)

    # Import and register routes
    from api.routes.planner import router as planner_router
    from api.routes.images import router as images_router
    from api.routes.settings import router as settings_router
    from api.routes.live import router as live_router

    app.include_router(planner_router, prefix="/api/planner", tags=["planner"])
    app.include_router(images_router, prefix="/api/images", tags=["images"])
    app.include_router(settings_router, prefix="/api/settings", tags=["settings"])
    app.include_router(live_router, prefix="/api", tags=["live"])

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok",
            "step": state.planner.step.value,
            "api_key_configured": config_manager.has_api_key,
            "live_session_active": state.has_live_session,
        }

    @app.get("/api/options")
    async def options():
        from core.render import options_view
        return options_view()

    return app
