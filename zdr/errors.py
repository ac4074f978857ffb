from __future__ import annotations

from typing import Any


class ZdrError(Exception):
    """Base class for rollback failures.

    Fatal errors raised by the controller carry the partial run report in
    ``report`` so callers can still print what happened before the abort.
    """

    def __init__(self, message: str, version: str | None = None):
        super().__init__(message)
        self.version = version
        self.report: Any = None


class UsageError(ZdrError):
    pass


class LockBusy(ZdrError):
    pass


class DiscoveryError(ZdrError):
    pass


class ManifestMissing(ZdrError):
    pass


class TargetManifestMissing(ManifestMissing):
    pass


class IoError(ZdrError):
    pass


class RoutingRuleMissing(ZdrError):
    pass


class ApplyError(ZdrError):
    pass
