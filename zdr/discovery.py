from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from docker.errors import DockerException

from .errors import DiscoveryError


class ServiceLister(Protocol):
    def list_service_names(self) -> list[str]: ...


@dataclass(frozen=True)
class Instance:
    version_id: str
    service_name: str
    is_running: bool = True


@dataclass(frozen=True)
class NamingConvention:
    """Versioned services are named ``<prefix>-<version_id>``."""

    prefix: str

    def service_name(self, version_id: str) -> str:
        return f"{self.prefix}-{version_id}"

    def parse(self, name: str) -> str | None:
        m = re.fullmatch(re.escape(self.prefix) + r"-([A-Za-z0-9]+)", name)
        return m.group(1) if m else None


def list_running_instances(runtime: ServiceLister, convention: NamingConvention) -> set[Instance]:
    """Running instances whose service name follows ``convention``.

    Any failure of the listing call aborts with DiscoveryError; a partial list
    is never returned.
    """
    try:
        names = runtime.list_service_names()
    except DiscoveryError:
        raise
    except (DockerException, OSError) as e:
        raise DiscoveryError(f"Listing running services failed: {e}") from e

    found: set[Instance] = set()
    for name in names:
        version_id = convention.parse(name)
        if version_id is None:
            continue
        found.add(Instance(version_id=version_id, service_name=name, is_running=True))
    return found
