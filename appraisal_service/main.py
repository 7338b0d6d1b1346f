import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from appraisal_service.core.config import settings
from appraisal_service.core.exceptions import AppException
from appraisal_service.core.logging import setup_logging

from appraisal_service.api.health import router as health_router
from appraisal_service.api.me import router as me_router
from appraisal_service.api.root import router as root_router
from appraisal_service.api.audit import router as audit_router
from appraisal_service.api.cycles import router as cycles_router
from appraisal_service.api.competencies import router as competencies_router
from appraisal_service.api.reviews import router as reviews_router
from appraisal_service.api.appraisals import router as appraisals_router
from appraisal_service.api.goals import router as goals_router
from appraisal_service.api.goals import template_goals_router
from appraisal_service.api.goal_templates import router as goal_templates_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Performance Appraisal Service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    logger.warning(
        exc.message,
        extra={"code": exc.error_code, "path": request.url.path, "method": request.method},
    )
    body = {"detail": exc.message, "code": exc.error_code}
    if exc.errors:
        body["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=body)


app.include_router(root_router)
app.include_router(health_router)
app.include_router(me_router)
app.include_router(audit_router)
# fixed /appraisals/... paths must register before /appraisals/{appraisal_id}
app.include_router(cycles_router)
app.include_router(competencies_router)
app.include_router(reviews_router)
app.include_router(appraisals_router)
# /goal-templates/my-goals and /goal-templates/goals/... before /goal-templates/{template_id}
app.include_router(template_goals_router)
app.include_router(goal_templates_router)
app.include_router(goals_router)
