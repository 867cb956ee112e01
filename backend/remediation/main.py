from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .db import Base, engine, get_db, ensure_schema
from .cleanup import purge_stale_sessions
from .errors import RemediationError
from .settings import settings
from .routers import health
from .routers import auth
from .routers import papers
from .routers import attempts
from .routers import gaps
from .routers import plan
from .routers import tasks
from .routers import suggestions
import asyncio
import logging

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)
_cleanup_task: "asyncio.Task | None" = None

app = FastAPI(title="Exam Remediation API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(papers.router)
app.include_router(attempts.router)
app.include_router(gaps.router)
app.include_router(plan.router)
app.include_router(tasks.router)
app.include_router(suggestions.router)


@app.exception_handler(RemediationError)
async def remediation_error_handler(request: Request, exc: RemediationError):
	return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def _purge_sessions_once() -> None:
	db = next(get_db())
	try:
		removed = purge_stale_sessions(db)
		if removed:
			logger.info("purged %s stale auth sessions", removed)
	except Exception:
		logger.exception("session cleanup failed")
	finally:
		db.close()


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_purge_sessions_once()


@app.on_event("startup")
async def startup_event():
	global _cleanup_task
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Add columns missing from tables created by earlier versions
	try:
		ensure_schema()
	except Exception:
		logger.exception("schema migration failed")
	# Best-effort cleanup at startup, then daily
	_purge_sessions_once()
	_cleanup_task = asyncio.create_task(_cleanup_watcher())
