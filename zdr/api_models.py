from __future__ import annotations

from pydantic import BaseModel, Field


class RollbackRequest(BaseModel):
    target_version_id: str = Field(..., description="Version to move the root claim to, e.g. a short commit hash")
    root_domain: str = Field(..., description="Bare root domain served by the reverse proxy")
    dry_run: bool = Field(False, description="Compute outcomes without writing or redeploying")


class InstanceOutcomeModel(BaseModel):
    version_id: str
    service_name: str
    claim: bool
    status: str = Field(..., description="succeeded|skipped|failed")
    changed: bool
    detail: str = ""


class RollbackReportModel(BaseModel):
    run_id: str
    target_version_id: str
    root_domain: str
    dry_run: bool
    state: str = Field(..., description="running|done|failed")
    ok: bool
    target: InstanceOutcomeModel | None = None
    others: list[InstanceOutcomeModel] = Field(default_factory=list)
    error: str | None = None
    started_at: str
    finished_at: str | None = None


class InstanceStateModel(BaseModel):
    version_id: str
    service_name: str
    is_running: bool
    manifest_present: bool
    root_claim: bool | None = None
    detail: str = ""
