"""
SightEd Backend — Middleware Package
======================================

Middleware Chain (outermost first, as registered in main.create_app):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    - Rate limiting rejects abusive clients before any other work happens.
    - The request ID is set before logging so every access line carries it.
"""
