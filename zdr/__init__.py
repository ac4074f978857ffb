"""Zero-Downtime Rollback (ZDR).

Moves root-domain traffic between versioned compose deployments behind
Traefik:
 - discovers running versioned services (``<prefix>-<version_id>``)
 - rewrites each version's router rule inside its compose manifest
 - redeploys one service at a time, new owner first

No instance is ever stopped; only router rules change.
"""
