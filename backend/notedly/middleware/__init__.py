"""
Notedly Backend — Middleware Package
======================================

Middleware Chain:
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route Handler

    Request ID runs first so the access log line, and every service log line
    written while handling the request, can carry the same correlation ID.
"""
