"""
auth/dependencies.py -- FastAPI Depends() helpers that run the gate chains.

Gate chains (auth/gates.py) are framework-free. This module is the thin
adapter: it snapshots the Authorization header and the already-validated body
into an InboundRequest, runs the chain against the Gatekeeper stored on
app.state, and hands the resulting context to the route handler as a plain
parameter. Nothing is stashed on request.state.

  require_access_token() -- use as Depends() on every access-token route.
  run_chain()            -- used by routes whose gates read the request body
                            (login, refresh); the route declares the pydantic
                            body model so validation runs before any gate.

Any AuthError a gate raises propagates to the exception handler registered in
api/main.py, which renders the 401/403 envelope.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system. No
imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from fastapi import Request

from auth.gates import Gate, Gatekeeper, InboundRequest, access_chain, run_gates
from auth.models import AccessContext


def run_chain(
    request: Request,
    chain: Callable[[Gatekeeper], list[Gate]],
    body: Mapping[str, Any] | None = None,
) -> Any:
    """Run chain against request and return the final gate context."""
    gatekeeper: Gatekeeper = request.app.state.gatekeeper
    inbound = InboundRequest(
        authorization=request.headers.get("Authorization"),
        body=body or {},
    )
    return run_gates(inbound, chain(gatekeeper))


def require_access_token(request: Request) -> AccessContext:
    """Require a valid bearer access token. Raises Unauthorized (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(ctx: AccessContext = Depends(require_access_token)): ...
    """
    return run_chain(request, access_chain)
