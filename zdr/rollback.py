from __future__ import annotations

import contextlib
import secrets
from pathlib import Path
from typing import Protocol

from . import db
from .alerts import notify_rollback
from .discovery import Instance, NamingConvention, list_running_instances
from .docker_ops import DockerRuntime, validate_root_domain, validate_version_id
from .errors import ApplyError, ManifestMissing, TargetManifestMissing, ZdrError
from .health import wait_healthy
from .lock import DeploymentLock
from .manifests import Manifest, ManifestStore
from .outcomes import FAILED, SKIPPED, SUCCEEDED, InstanceOutcome, InstanceState, RollbackReport
from .routing import has_root_claim, set_root_claim
from .settings import Settings, settings as default_settings


class Runtime(Protocol):
    def list_service_names(self) -> list[str]: ...

    def apply(self, manifest_path: Path, service_name: str) -> None: ...


class RollbackController:
    """Moves the root claim to one deployed version without stopping any instance.

    The target claims first and is redeployed before any other instance is
    touched, so the root domain always has an owner. Until the others are
    released there is a short window with two owners; that is accepted.
    """

    def __init__(
        self,
        runtime: Runtime | None = None,
        cfg: Settings | None = None,
        store: ManifestStore | None = None,
    ):
        self.settings = cfg or default_settings
        self.runtime = runtime or DockerRuntime(self.settings)
        self.store = store or ManifestStore(self.settings.deploy_dir, self.settings.manifest_suffix)
        self.convention = NamingConvention(self.settings.service_prefix)

    def rollback(self, target_version_id: str, root_domain: str, dry_run: bool = False) -> RollbackReport:
        validate_version_id(target_version_id)
        validate_root_domain(root_domain)

        report = RollbackReport(
            run_id=secrets.token_hex(6),
            target_version_id=target_version_id,
            root_domain=root_domain,
            dry_run=dry_run,
        )
        db.log_event("INFO", f"Rollback to {target_version_id} on {root_domain} started", version=target_version_id)

        # A dry run only reads, so it neither needs nor creates the lock file.
        # Without a deployment directory there is nothing to lock; the target
        # read below then fails as a missing manifest.
        if dry_run or not self.store.deploy_dir.is_dir():
            guard = contextlib.nullcontext()
        else:
            guard = DeploymentLock(self.store.deploy_dir)
        try:
            with guard:
                self._claim_target(report)
                for inst in self._discover_others(target_version_id):
                    report.others.append(self._release(inst, root_domain, dry_run))
        except ZdrError as e:
            report.finish(error=f"{type(e).__name__}: {e}")
            e.report = report
            db.log_event("ERROR", f"Rollback failed: {report.error}", version=target_version_id)
            self._record(report)
            raise

        report.finish()
        db.log_event(
            "INFO",
            f"Rollback completed: {report.count(SUCCEEDED)} succeeded, "
            f"{report.count(SKIPPED)} skipped, {report.count(FAILED)} failed",
            version=target_version_id,
        )
        self._record(report)
        return report

    def instances(self, root_domain: str) -> list[InstanceState]:
        """Running instances with their current root-claim state."""
        validate_root_domain(root_domain)
        states: list[InstanceState] = []
        for inst in sorted(list_running_instances(self.runtime, self.convention), key=lambda i: i.version_id):
            st = InstanceState(version_id=inst.version_id, service_name=inst.service_name, is_running=inst.is_running)
            try:
                manifest = self.store.read(inst.version_id)
                st.manifest_present = True
                st.root_claim = has_root_claim(manifest, inst.service_name, root_domain)
            except ManifestMissing:
                pass
            except ZdrError as e:
                st.detail = str(e)
            states.append(st)
        return states

    def _record(self, report: RollbackReport) -> None:
        db.record_rollback(report)
        notify_rollback(report, self.settings)

    def _claim_target(self, report: RollbackReport) -> None:
        version_id = report.target_version_id
        service = self.convention.service_name(version_id)
        outcome = InstanceOutcome(version_id=version_id, service_name=service, claim=True)
        report.target = outcome
        try:
            try:
                manifest = self.store.read(version_id)
            except ManifestMissing as e:
                raise TargetManifestMissing(
                    f"Target manifest missing: {self.store.path_for(version_id)}", version=version_id
                ) from e
            self._update(manifest, service, report.root_domain, True, outcome, report.dry_run)
            if not report.dry_run:
                self._confirm_target(version_id, report.root_domain)
        except ZdrError as e:
            outcome.status = FAILED
            outcome.detail = str(e)
            raise

        db.log_event("INFO", f"Target cutover: {outcome.detail}", service_name=service, version=version_id)

    def _confirm_target(self, version_id: str, root_domain: str) -> None:
        if not self.settings.health_path:
            return
        url = f"{self.settings.health_scheme}://{version_id}.{root_domain}{self.settings.health_path}"
        ok, msg = wait_healthy(url, timeout_s=self.settings.confirm_timeout_s)
        if not ok:
            raise ApplyError(f"{url} not healthy after apply: {msg}", version=version_id)

    def _discover_others(self, target_version_id: str) -> list[Instance]:
        found = list_running_instances(self.runtime, self.convention)
        return sorted((i for i in found if i.version_id != target_version_id), key=lambda i: i.version_id)

    def _release(self, inst: Instance, root_domain: str, dry_run: bool) -> InstanceOutcome:
        outcome = InstanceOutcome(version_id=inst.version_id, service_name=inst.service_name, claim=False)
        try:
            manifest = self.store.read(inst.version_id)
        except ManifestMissing:
            outcome.status = SKIPPED
            outcome.detail = "no manifest"
            db.log_event("WARN", "No manifest; skipped", service_name=inst.service_name, version=inst.version_id)
            return outcome
        except ZdrError as e:
            return self._failed(outcome, e)

        try:
            self._update(manifest, inst.service_name, root_domain, False, outcome, dry_run)
        except ZdrError as e:
            return self._failed(outcome, e)
        db.log_event("INFO", outcome.detail, service_name=inst.service_name, version=inst.version_id)
        return outcome

    def _failed(self, outcome: InstanceOutcome, e: ZdrError) -> InstanceOutcome:
        outcome.status = FAILED
        outcome.detail = str(e)
        db.log_event(
            "ERROR",
            f"{type(e).__name__}: {e}",
            service_name=outcome.service_name,
            version=outcome.version_id,
        )
        return outcome

    def _update(
        self,
        manifest: Manifest,
        service: str,
        root_domain: str,
        claim: bool,
        outcome: InstanceOutcome,
        dry_run: bool,
    ) -> None:
        updated = set_root_claim(manifest, service, root_domain, claim)
        outcome.changed = updated.data != manifest.data
        verb = "granted" if claim else "released"
        if not outcome.changed:
            outcome.detail = "root claim already held" if claim else "no root claim held"
        elif dry_run:
            outcome.detail = f"root claim would be {verb}"
        else:
            outcome.detail = f"root claim {verb}"

        if dry_run:
            outcome.status = SUCCEEDED
            return
        if outcome.changed:
            self.store.write(updated)
        self.runtime.apply(updated.path, service)
        outcome.status = SUCCEEDED
