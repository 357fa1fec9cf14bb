"""
Journal gateway service package.

The gateway fronts the journaling UI, enforcing:
- Authentication: Firebase ID tokens verified against published keys
- Rate limiting: fixed-window counters in Redis, failing open
- Validation: payload checks before any external call
- Completion: reflections from the upstream chat-completion oracle
- Persistence: owner-scoped entries in MongoDB

Structure:
- app.main: standalone FastAPI service and collaborator wiring.
- app.functions: one app per route group for function-style deployment.
- app.routes: route registration shared by both shapes.
- app.auth, app.ratelimit, app.completion, app.adapters: collaborators.
- app.domain: validation and the per-route orchestrator.
"""
