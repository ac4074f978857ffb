from __future__ import annotations

import re
import subprocess
import time
from pathlib import Path

import docker
from docker.errors import DockerException

from .errors import ApplyError, DiscoveryError
from .settings import Settings, settings as default_settings


VERSION_ID_RE = re.compile(r"^[A-Za-z0-9]{1,64}$")
DOMAIN_RE = re.compile(r"^(?=.{1,253}$)([A-Za-z0-9]([A-Za-z0-9\-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,63}$")

COMPOSE_SERVICE_LABEL = "com.docker.compose.service"


def validate_version_id(version_id: str) -> None:
    # Also keeps the manifest path inside the deployment directory.
    if not VERSION_ID_RE.match(version_id):
        raise ValueError("Invalid version id. Use letters and digits only (max 64 chars).")


def validate_root_domain(domain: str) -> None:
    if not DOMAIN_RE.match(domain):
        raise ValueError(f"Invalid root domain: {domain!r}.")


class DockerRuntime:
    """Orchestration runtime backed by the Docker Engine API and the compose CLI."""

    def __init__(self, cfg: Settings | None = None):
        self.settings = cfg or default_settings
        self._docker: docker.DockerClient | None = None

    def _client(self) -> docker.DockerClient:
        if self._docker is None:
            self._docker = docker.from_env(timeout=self.settings.docker_timeout_s)
        return self._docker

    def list_service_names(self) -> list[str]:
        """Names of running services: compose service label, else container name."""
        try:
            containers = self._client().containers.list(filters={"status": "running"})
        except (DockerException, OSError) as e:
            raise DiscoveryError(f"Listing containers failed: {e}") from e
        names: list[str] = []
        for c in containers:
            labels = c.labels or {}
            names.append(labels.get(COMPOSE_SERVICE_LABEL) or c.name)
        return names

    def service_is_running(self, service_name: str) -> bool:
        # requests' connection errors reach us unwrapped; they are OSError subclasses.
        try:
            found = self._client().containers.list(
                filters={"status": "running", "label": [f"{COMPOSE_SERVICE_LABEL}={service_name}"]}
            )
        except (DockerException, OSError) as e:
            raise ApplyError(f"Cannot confirm {service_name} is running: {e}") from e
        return bool(found)

    def compose_command(self, manifest_path: Path, service_name: str) -> list[str]:
        cmd = ["docker", "compose", "-f", str(manifest_path)]
        if self.settings.compose_project:
            cmd += ["-p", self.settings.compose_project]
        return cmd + ["up", "-d", "--no-deps", service_name]

    def apply(self, manifest_path: Path, service_name: str) -> None:
        """Reconcile exactly one service to the manifest's declared state.

        Compose only recreates the container when its configuration changed,
        so calling this with an unchanged manifest is a no-op.
        """
        cmd = self.compose_command(manifest_path, service_name)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.settings.apply_timeout_s)
        except subprocess.TimeoutExpired as e:
            raise ApplyError(f"'{' '.join(cmd)}' timed out after {self.settings.apply_timeout_s}s") from e
        except OSError as e:
            raise ApplyError(f"Could not run docker compose: {e}") from e
        if result.returncode != 0:
            raise ApplyError(f"docker compose exited {result.returncode}: {result.stderr.strip()}")

        t0 = time.time()
        while True:
            if self.service_is_running(service_name):
                return
            if time.time() - t0 >= self.settings.confirm_timeout_s:
                break
            time.sleep(1)
        raise ApplyError(
            f"Service {service_name} not running {self.settings.confirm_timeout_s}s after apply"
        )
