import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from move_portal.config import settings
from move_portal.db import init_db
from move_portal.exceptions import MoveWorkflowError, NotFound, PreconditionFailed, RoleNotPermitted
from move_portal.routers import facilities, resident
from move_portal.security.headers import install_security_headers
from move_portal.security.principal import install_principal_middleware

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
)
logger = logging.getLogger('move_portal')


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.auto_create_schema:
        init_db()
    yield


app = FastAPI(title='Move Request Portal', lifespan=lifespan)

install_security_headers(app)
install_principal_middleware(app)

app.include_router(resident.router)
app.include_router(facilities.router)


def _status_for(exc: MoveWorkflowError) -> int:
    if isinstance(exc, NotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, RoleNotPermitted):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, PreconditionFailed):
        return status.HTTP_409_CONFLICT
    return status.HTTP_400_BAD_REQUEST


@app.exception_handler(MoveWorkflowError)
async def workflow_error_handler(request: Request, exc: MoveWorkflowError):
    logger.warning('Rejected %s %s: %s', request.method, request.url.path, exc)
    return JSONResponse(
        status_code=_status_for(exc),
        content={'error': type(exc).__name__, 'detail': str(exc)},
    )


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    logger.warning('Concurrent update on %s %s', request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={'error': 'ConcurrentUpdate', 'detail': 'The move request changed while this command ran; retry.'},
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    # Two submissions racing for the same MOVE-NNN id, or a second receipt for one move.
    logger.warning('Constraint violation on %s %s: %s', request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={'error': 'Conflict', 'detail': 'The request conflicts with a concurrent change; retry.'},
    )


@app.get('/')
def root():
    return {'service': 'move-request-portal', 'roles': ['resident', 'fm']}


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
