from __future__ import annotations

import copy
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import IoError, ManifestMissing


@dataclass
class Manifest:
    """Parsed compose document for one deployed version."""

    version_id: str
    path: Path
    data: dict[str, Any] = field(default_factory=dict)

    def services(self) -> dict[str, Any]:
        services = self.data.get("services")
        return services if isinstance(services, dict) else {}

    def copy(self) -> "Manifest":
        return Manifest(version_id=self.version_id, path=self.path, data=copy.deepcopy(self.data))

    def dump(self) -> str:
        # Wide enough that router rules stay on one line.
        return yaml.safe_dump(self.data, sort_keys=False, default_flow_style=False, width=4096)


class ManifestStore:
    """One compose file per version at ``<deploy_dir>/<version_id>-<suffix>``."""

    def __init__(self, deploy_dir: str | os.PathLike[str], suffix: str):
        self.deploy_dir = Path(deploy_dir)
        self.suffix = suffix

    def path_for(self, version_id: str) -> Path:
        return self.deploy_dir / f"{version_id}-{self.suffix}"

    def read(self, version_id: str) -> Manifest:
        path = self.path_for(version_id)
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ManifestMissing(f"No manifest at {path}", version=version_id) from e
        except (OSError, yaml.YAMLError) as e:
            raise IoError(f"Cannot read manifest {path}: {e}", version=version_id) from e
        if not isinstance(data, dict):
            raise IoError(f"Manifest {path} is not a YAML mapping", version=version_id)
        if not isinstance(data.get("services") or {}, dict):
            raise IoError(f"Manifest {path}: 'services' is not a mapping", version=version_id)
        return Manifest(version_id=version_id, path=path, data=data)

    def write(self, manifest: Manifest) -> None:
        """Replace the manifest file; a failed write leaves the old file intact."""
        path = self.path_for(manifest.version_id)
        tmp_name: str | None = None
        try:
            text = manifest.dump()
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            if path.exists():
                os.chmod(tmp_name, path.stat().st_mode & 0o7777)
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, yaml.YAMLError) as e:
            raise IoError(f"Cannot write manifest {path}: {e}", version=manifest.version_id) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        manifest.path = path
