from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from knowspark.config import settings
from knowspark.utils.logging import configure_logging
from knowspark.routers.questions import router as questions_router
from knowspark.routers.projects import router as projects_router
from knowspark.routers.render import router as render_router
from knowspark.utils.audit import auditor
from knowspark.services.llm_service import llm_service


configure_logging()
auditor.configure(settings.analytics_path)
app = FastAPI(title="KnowSpark Backend", version="0.1.0")

# CORS
app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.cors_allow_origins,
	# Browsers reject credentials with a wildcard origin
	allow_credentials=False if settings.cors_allow_origins == ["*"] else True,
	allow_methods=["*"],
	allow_headers=["*"],
	max_age=3600,
)


@app.get("/health")
async def health() -> JSONResponse:
	return JSONResponse({
		"status": "ok",
		"version": app.version,
		"llm": {"provider": llm_service.provider, "model": llm_service.model, "enabled": llm_service.enabled},
	})


# Routers
app.include_router(questions_router, prefix="/api", tags=["questions"])
app.include_router(projects_router, prefix="/api", tags=["projects"])
app.include_router(render_router, prefix="/api", tags=["render"])
