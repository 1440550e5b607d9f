# Agentage local API layer
# Created: 2026-02-21
#
# Versioned REST + SSE endpoints for the desktop shell and scripts, mounted at /api/v1/.
