from __future__ import annotations

import secrets

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from . import db
from .api_models import InstanceStateModel, RollbackReportModel, RollbackRequest
from .docker_ops import validate_root_domain, validate_version_id
from .errors import DiscoveryError, LockBusy, TargetManifestMissing, ZdrError
from .rollback import RollbackController
from .settings import settings

app = FastAPI(title="Zero-Downtime Rollback")
security = HTTPBasic()

ERROR_STATUS: list[tuple[type[ZdrError], int]] = [
    (TargetManifestMissing, status.HTTP_404_NOT_FOUND),
    (LockBusy, status.HTTP_409_CONFLICT),
    (DiscoveryError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ZdrError, status.HTTP_502_BAD_GATEWAY),
]


def get_current_username(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    user_ok = secrets.compare_digest(credentials.username.encode(), settings.api_user.encode())
    pass_ok = settings.api_password is not None and secrets.compare_digest(
        credentials.password.encode(), settings.api_password.encode()
    )
    if not (user_ok and pass_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


def get_controller() -> RollbackController:
    return RollbackController()


def _status_for(err: ZdrError) -> int:
    for cls, code in ERROR_STATUS:
        if isinstance(err, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _validated(check, value: str) -> None:
    try:
        check(value)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "healthy"}


@app.get("/instances", response_model=list[InstanceStateModel])
def list_instances(
    root_domain: str,
    username: str = Depends(get_current_username),
    controller: RollbackController = Depends(get_controller),
):
    _validated(validate_root_domain, root_domain)
    try:
        states = controller.instances(root_domain)
    except ZdrError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e))
    return [InstanceStateModel(**vars(st)) for st in states]


@app.post("/rollbacks", response_model=RollbackReportModel)
def create_rollback(
    req: RollbackRequest,
    username: str = Depends(get_current_username),
    controller: RollbackController = Depends(get_controller),
):
    _validated(validate_version_id, req.target_version_id)
    _validated(validate_root_domain, req.root_domain)
    db.log_event("INFO", f"Rollback requested by {username}", version=req.target_version_id)
    try:
        report = controller.rollback(req.target_version_id, req.root_domain, dry_run=req.dry_run)
    except ZdrError as e:
        detail = {"error": f"{type(e).__name__}: {e}"}
        if e.report is not None:
            detail["report"] = e.report.to_dict()
        raise HTTPException(status_code=_status_for(e), detail=detail)
    return RollbackReportModel(**report.to_dict())


@app.get("/rollbacks", response_model=list[RollbackReportModel])
def list_rollbacks(
    limit: int = Query(20, ge=1, le=500),
    target: str | None = None,
    username: str = Depends(get_current_username),
):
    return [RollbackReportModel(**row.report_dict()) for row in db.list_rollbacks(limit=limit, target_version=target)]


@app.get("/events")
def events(limit: int = Query(50, ge=1, le=1000), username: str = Depends(get_current_username)):
    return db.latest_events(limit)
