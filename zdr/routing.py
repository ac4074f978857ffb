"""Traefik router rules inside compose manifests.

A versioned service always answers on ``<version_id>.<root_domain>``. The
instance holding the root claim additionally answers on the bare root domain
and its ``www`` variant:

    Host(`abcd123.example.com`) || Host(`example.com`) || Host(`www.example.com`)

Rules are located through the compose service block and its router labels,
never by their position or text in the file.
"""
from __future__ import annotations

import re
from typing import Any

from .errors import RoutingRuleMissing
from .manifests import Manifest


ROUTER_LABEL_RE = re.compile(r"^traefik\.http\.routers\.(?P<router>[^.]+)\.(?P<attr>rule|service)$")
HOST_ATOM_RE = re.compile(r"Host\(`([^`]*)`\)")


def host(value: str) -> str:
    return f"Host(`{value}`)"


def build_rule(version_id: str, root_domain: str, claim: bool) -> str:
    hosts = [f"{version_id}.{root_domain}"]
    if claim:
        hosts += [root_domain, f"www.{root_domain}"]
    return " || ".join(host(h) for h in hosts)


def parse_rule(rule: str) -> list[str]:
    """Host names matched by a rule, in order."""
    return HOST_ATOM_RE.findall(rule)


def rule_claims_root(rule: str, root_domain: str) -> bool:
    hosts = parse_rule(rule)
    return root_domain in hosts or f"www.{root_domain}" in hosts


def _label_items(labels: Any) -> list[tuple[str, str]]:
    if isinstance(labels, dict):
        return [(str(k), "" if v is None else str(v)) for k, v in labels.items()]
    items: list[tuple[str, str]] = []
    for entry in labels or []:
        key, _, value = str(entry).partition("=")
        items.append((key.strip(), value))
    return items


def _service_block(manifest: Manifest, service_name: str) -> dict[str, Any]:
    block = manifest.services().get(service_name)
    if not isinstance(block, dict):
        raise RoutingRuleMissing(
            f"Service {service_name} not declared in {manifest.path}", version=manifest.version_id
        )
    return block


def find_router(block: dict[str, Any], service_name: str) -> str | None:
    """Router whose rule belongs to ``service_name`` within its compose block.

    Lookup order: a router named after the service, then the single router
    bound to it through ``.service``, then the single router with a rule.
    """
    rules: list[str] = []
    bound: list[str] = []
    for key, value in _label_items(block.get("labels")):
        m = ROUTER_LABEL_RE.match(key)
        if not m:
            continue
        if m.group("attr") == "rule":
            rules.append(m.group("router"))
        elif value.strip() == service_name:
            bound.append(m.group("router"))

    if service_name in rules:
        return service_name
    bound_with_rule = [r for r in bound if r in rules]
    if len(bound_with_rule) == 1:
        return bound_with_rule[0]
    if len(rules) == 1:
        return rules[0]
    return None


def _rule_key(manifest: Manifest, block: dict[str, Any], service_name: str) -> str:
    router = find_router(block, service_name)
    if router is None:
        raise RoutingRuleMissing(
            f"No router rule for service {service_name} in {manifest.path}", version=manifest.version_id
        )
    return f"traefik.http.routers.{router}.rule"


def get_rule(manifest: Manifest, service_name: str) -> str:
    block = _service_block(manifest, service_name)
    key = _rule_key(manifest, block, service_name)
    return dict(_label_items(block.get("labels")))[key]


def has_root_claim(manifest: Manifest, service_name: str, root_domain: str) -> bool:
    return rule_claims_root(get_rule(manifest, service_name), root_domain)


def set_root_claim(manifest: Manifest, service_name: str, root_domain: str, claim: bool) -> Manifest:
    """Return a copy of ``manifest`` with the service's rule granting or revoking the root claim.

    Only the one rule label is replaced; every other key keeps its value and
    position. Applying the same claim twice yields the same rule.
    """
    updated = manifest.copy()
    block = _service_block(updated, service_name)
    key = _rule_key(updated, block, service_name)
    rule = build_rule(updated.version_id, root_domain, claim)

    labels = block["labels"]
    if isinstance(labels, dict):
        labels[key] = rule
        return updated
    # Compose keeps the last of repeated keys; rewrite them all so none is left stale.
    for i, entry in enumerate(labels):
        k, sep, _ = str(entry).partition("=")
        if sep and k.strip() == key:
            labels[i] = f"{key}={rule}"
    return updated
