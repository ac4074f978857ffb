from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from .db import utc_now


SUCCEEDED = "succeeded"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class InstanceOutcome:
    version_id: str
    service_name: str
    claim: bool
    status: str = FAILED  # succeeded|skipped|failed
    changed: bool = False
    detail: str = ""


@dataclass
class InstanceState:
    version_id: str
    service_name: str
    is_running: bool = True
    manifest_present: bool = False
    root_claim: bool | None = None
    detail: str = ""


@dataclass
class RollbackReport:
    run_id: str
    target_version_id: str
    root_domain: str
    dry_run: bool = False
    state: str = "running"  # running|done|failed
    target: InstanceOutcome | None = None
    others: list[InstanceOutcome] = field(default_factory=list)
    error: str | None = None
    started_at: str = field(default_factory=utc_now)
    finished_at: str | None = None

    @property
    def target_succeeded(self) -> bool:
        return self.target is not None and self.target.status == SUCCEEDED

    @property
    def ok(self) -> bool:
        """True when the cutover itself held; non-target failures do not count."""
        return self.state == "done" and self.target_succeeded

    def count(self, status: str) -> int:
        return sum(1 for o in self.others if o.status == status)

    def finish(self, error: str | None = None) -> None:
        self.error = error
        self.state = "failed" if error else "done"
        self.finished_at = utc_now()

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["ok"] = self.ok
        return d

    def summary_lines(self) -> list[str]:
        mode = " (dry run)" if self.dry_run else ""
        lines = [f"Rollback to {self.target_version_id} on {self.root_domain}{mode}"]
        if self.target is None:
            lines.append("target cutover: failed")
        else:
            detail = f" ({self.target.detail})" if self.target.detail else ""
            lines.append(f"target cutover: {self.target.status}{detail}")
        for o in self.others:
            detail = f" ({o.detail})" if o.detail else ""
            lines.append(f"  {o.service_name}: {o.status}{detail}")
        if self.error:
            lines.append(f"error: {self.error}")
        lines.append(
            f"others: {self.count(SUCCEEDED)} succeeded, {self.count(SKIPPED)} skipped, {self.count(FAILED)} failed"
        )
        return lines
