"""Trust ``X-Forwarded-*`` headers from one reverse-proxy hop."""

from __future__ import annotations

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """Wrap the WSGI app in :class:`~werkzeug.middleware.proxy_fix.ProxyFix` when enabled.

    ``request.remote_addr`` then reflects the client address forwarded by the
    proxy, which is what audit entries record as ``ip``. Controlled by
    ``USE_PROXYFIX``; ``PROXYFIX_HOPS`` sets how many hops are trusted.
    """
    if not app.config.get("USE_PROXYFIX", True):
        return
    hops = int(app.config.get("PROXYFIX_HOPS", 1))
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops, x_prefix=hops)
