# revision_planner/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from revision_planner.api.routes.auth import router as auth_router
from revision_planner.api.routes.planner import router as planner_router
from revision_planner.api.routes.quiz import router as quiz_router
from revision_planner.api.routes.subscription import router as subscription_router
from revision_planner.config import LOG_FORMAT, LOG_LEVEL
from revision_planner.errors import PlannerError
from revision_planner.services.mongo import close_mongo_client

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(title="Revision Planner", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(planner_router)
app.include_router(quiz_router)
app.include_router(subscription_router)


@app.exception_handler(PlannerError)
async def handle_planner_error(request: Request, exc: PlannerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(HTTPException)
async def handle_http_error(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Invalid request.", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError):
    return [{"loc": list(error.get("loc", ())), "msg": error.get("msg")} for error in exc.errors()]


@app.get("/health")
def health():
    return {"success": True, "message": "ok"}


@app.on_event("shutdown")
def close_database():
    close_mongo_client()
