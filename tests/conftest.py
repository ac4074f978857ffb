from __future__ import annotations

from pathlib import Path

import pytest

from zdr import db
from zdr.errors import ApplyError, DiscoveryError
from zdr.manifests import Manifest, ManifestStore
from zdr.rollback import RollbackController
from zdr.routing import build_rule, get_rule
from zdr.settings import Settings

DOMAIN = "example.com"

LIST_STYLE = """\
version: "3.8"
services:
  app-{v}:
    image: registry.example.com/app:{v}
    restart: unless-stopped
    labels:
      - "traefik.enable=true"
      - "traefik.http.routers.app-{v}.rule={rule}"
      - "traefik.http.routers.app-{v}.entrypoints=websecure"
      - "traefik.http.routers.app-{v}.tls.certresolver=letsencrypt"
      - "traefik.http.services.app-{v}.loadbalancer.server.port=8000"
    networks:
      - web
  worker-{v}:
    image: registry.example.com/worker:{v}
    command: ["python", "-m", "worker"]
networks:
  web:
    external: true
"""

MAPPING_STYLE = """\
services:
  worker-{v}:
    image: registry.example.com/worker:{v}
  app-{v}:
    networks: [web]
    labels:
      traefik.http.services.app-{v}.loadbalancer.server.port: "8000"
      traefik.http.routers.app-{v}.tls.certresolver: letsencrypt
      traefik.http.routers.app-{v}.rule:   "{rule}"
      traefik.enable: "true"
    image: registry.example.com/app:{v}
"""


def compose_text(version_id: str, claim: bool = False, style: str = "list", domain: str = DOMAIN) -> str:
    template = LIST_STYLE if style == "list" else MAPPING_STYLE
    return template.format(v=version_id, rule=build_rule(version_id, domain, claim))


class RecordingStore(ManifestStore):
    def __init__(self, deploy_dir, suffix, calls):
        super().__init__(deploy_dir, suffix)
        self.calls = calls

    def read(self, version_id: str) -> Manifest:
        self.calls.append(("read", version_id))
        return super().read(version_id)

    def write(self, manifest: Manifest) -> None:
        self.calls.append(("write", manifest.version_id))
        super().write(manifest)


class FakeRuntime:
    """Stands in for Docker: a fixed service listing and recorded applies."""

    def __init__(self, calls):
        self.calls = calls
        self.names: list[str] = []
        self.fail_list = False
        self.fail_apply: set[str] = set()
        self.on_apply = None

    def list_service_names(self) -> list[str]:
        self.calls.append(("list", None))
        if self.fail_list:
            raise DiscoveryError("docker daemon unreachable")
        return list(self.names)

    def apply(self, manifest_path: Path, service_name: str) -> None:
        self.calls.append(("apply", service_name))
        if self.on_apply is not None:
            self.on_apply(manifest_path, service_name)
        if service_name in self.fail_apply:
            raise ApplyError(f"compose up {service_name} timed out")


@pytest.fixture(autouse=True)
def journal(tmp_path, monkeypatch):
    """Keep the event journal out of the working directory."""
    monkeypatch.setattr(db, "settings", Settings(db_path=str(tmp_path / "journal" / "zdr.db")))


@pytest.fixture
def cfg(tmp_path) -> Settings:
    deploy_dir = tmp_path / "deploy"
    deploy_dir.mkdir()
    return Settings(
        deploy_dir=str(deploy_dir),
        manifest_suffix="docker-compose.yml",
        service_prefix="app",
        compose_project=None,
        confirm_timeout_s=0,
        health_path=None,
        health_scheme="https",
        enable_email=False,
    )


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def store(cfg, calls) -> RecordingStore:
    return RecordingStore(cfg.deploy_dir, cfg.manifest_suffix, calls)


@pytest.fixture
def runtime(calls) -> FakeRuntime:
    return FakeRuntime(calls)


@pytest.fixture
def controller(runtime, cfg, store) -> RollbackController:
    return RollbackController(runtime=runtime, cfg=cfg, store=store)


@pytest.fixture
def write_manifest(cfg):
    def _write(version_id: str, claim: bool = False, style: str = "list") -> Path:
        path = Path(cfg.deploy_dir) / f"{version_id}-{cfg.manifest_suffix}"
        path.write_text(compose_text(version_id, claim, style), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def rule_of(cfg):
    plain = ManifestStore(cfg.deploy_dir, cfg.manifest_suffix)

    def _rule(version_id: str) -> str:
        return get_rule(plain.read(version_id), f"app-{version_id}")

    return _rule
