import os
import stat

import pytest

from zdr.errors import IoError, ManifestMissing, TargetManifestMissing
from zdr.manifests import ManifestStore
from zdr.routing import set_root_claim


def test_path_is_keyed_by_version(tmp_path):
    store = ManifestStore(tmp_path, "docker-compose.yml")
    assert store.path_for("abcd123") == tmp_path / "abcd123-docker-compose.yml"


def test_missing_manifest_is_not_target_error(tmp_path):
    store = ManifestStore(tmp_path, "docker-compose.yml")
    with pytest.raises(ManifestMissing) as exc:
        store.read("abcd123")
    assert not isinstance(exc.value, TargetManifestMissing)
    assert exc.value.version == "abcd123"


@pytest.mark.parametrize("content", ["services: [unclosed\n", "- just\n- a list\n", ""])
def test_unreadable_manifest_is_io_error(tmp_path, content):
    (tmp_path / "abcd123-docker-compose.yml").write_text(content)
    with pytest.raises(IoError):
        ManifestStore(tmp_path, "docker-compose.yml").read("abcd123")


def test_write_persists_update_and_keeps_mode(cfg, write_manifest):
    path = write_manifest("abcd123")
    os.chmod(path, 0o640)
    store = ManifestStore(cfg.deploy_dir, cfg.manifest_suffix)

    store.write(set_root_claim(store.read("abcd123"), "app-abcd123", "example.com", claim=True))

    assert "Host(`www.example.com`)" in path.read_text()
    assert stat.S_IMODE(path.stat().st_mode) == 0o640
    assert sorted(p.name for p in path.parent.iterdir()) == ["abcd123-docker-compose.yml"]


def test_write_failure_is_io_error(cfg, write_manifest, tmp_path):
    write_manifest("abcd123")
    manifest = ManifestStore(cfg.deploy_dir, cfg.manifest_suffix).read("abcd123")
    gone = ManifestStore(tmp_path / "does-not-exist", cfg.manifest_suffix)

    with pytest.raises(IoError):
        gone.write(manifest)
    assert not (tmp_path / "does-not-exist").exists()


@pytest.mark.parametrize("services", ["services:\n  - app-abcd123\n", "services: app-abcd123\n"])
def test_services_must_be_a_mapping(tmp_path, services):
    (tmp_path / "abcd123-docker-compose.yml").write_text(services)
    with pytest.raises(IoError, match="'services' is not a mapping"):
        ManifestStore(tmp_path, "docker-compose.yml").read("abcd123")
