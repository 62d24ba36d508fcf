import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401  registers tables on Base.metadata
from .db import Base, engine
from .errors import AdminError
from .settings import settings
from .taxonomy import catalog
from .routers import auth, gemini
from .routers import questions
from .routers import question_sets
from .routers import users
from .routers import worksheets

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Worksheet Admin API")

app.add_middleware(
	CORSMiddleware,
	allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
	allow_credentials=False,
	allow_methods=["*"],
	allow_headers=["*"],
)

app.include_router(gemini.router)
app.include_router(auth.router)
app.include_router(questions.router)
app.include_router(question_sets.router)
app.include_router(users.router)
app.include_router(worksheets.router)


@app.exception_handler(AdminError)
async def admin_error_handler(request: Request, exc: AdminError):
	if exc.status_code >= 500:
		logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
	return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/info")
def root():
	return {
		"status": "ok",
		"gemini_configured": bool(settings.gemini_api_key),
		"storage_configured": bool(settings.supabase_url and settings.supabase_key),
	}


@app.get("/taxonomy")
def taxonomy():
	return catalog()


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
