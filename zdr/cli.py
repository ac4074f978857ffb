from __future__ import annotations

import argparse
import json
import sys
from typing import Any, NoReturn

import requests

from .docker_ops import validate_root_domain, validate_version_id
from .errors import ZdrError
from .outcomes import RollbackReport
from .rollback import RollbackController
from .settings import settings

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FAILED = 2


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def _print(obj: Any) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _show(report: RollbackReport, as_json: bool) -> None:
    if as_json:
        _print(report.to_dict())
        return
    for line in report.summary_lines():
        print(line)


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(
        prog="zdr",
        description="Move root-domain traffic to a previously deployed version without stopping any instance.",
    )
    p.add_argument("target_version_id", help="Version to roll back to (e.g. short commit hash)")
    p.add_argument("root_domain", help="Root domain, e.g. example.com")
    p.add_argument("--dry-run", action="store_true", help="Show what would change; write and redeploy nothing")
    p.add_argument("--json", action="store_true", help="Print the run report as JSON")
    p.add_argument("--api", default=None, help="Submit to a running ZDR API at this base URL instead")
    p.add_argument("--api-timeout", type=int, default=600, help="Seconds to wait for the API to answer")
    return p


def _run_remote(args: argparse.Namespace) -> int:
    base = args.api.rstrip("/")
    payload = {
        "target_version_id": args.target_version_id,
        "root_domain": args.root_domain,
        "dry_run": args.dry_run,
    }
    auth = (settings.api_user, settings.api_password or "")
    try:
        r = requests.post(f"{base}/rollbacks", json=payload, auth=auth, timeout=args.api_timeout)
    except requests.RequestException as e:
        print(f"zdr: API request failed: {e}", file=sys.stderr)
        return EXIT_FAILED
    try:
        body = r.json()
    except ValueError:
        body = {"status_code": r.status_code, "text": r.text}
    _print(body)
    if r.status_code == 422:
        return EXIT_USAGE
    return EXIT_OK if r.ok and body.get("ok") else EXIT_FAILED


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.api:
        return _run_remote(args)

    try:
        validate_version_id(args.target_version_id)
        validate_root_domain(args.root_domain)
    except ValueError as e:
        print(f"zdr: error: {e}", file=sys.stderr)
        return EXIT_USAGE

    controller = RollbackController()
    try:
        report = controller.rollback(args.target_version_id, args.root_domain, dry_run=args.dry_run)
    except ZdrError as e:
        if e.report is not None:
            _show(e.report, args.json)
        else:
            print(f"zdr: {type(e).__name__}: {e}", file=sys.stderr)
        return EXIT_FAILED

    _show(report, args.json)
    return EXIT_OK if report.ok else EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
