# Middleware package init
"""
SnapPDF Backend — Middleware Package
=====================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Request ID: correlation ID for log lines and error bodies
    2. Logging: method, path, status and duration with that ID
    3. CORS: FastAPI's CORSMiddleware (handles preflight, exposes
       Content-Disposition so browsers can read the PDF filename)
"""
