"""
Canopy Backend: Middleware Package
===================================

Middleware Chain:
    Request → [Request ID] → [Access Log] → [CORS] → Route Handler

    Starlette runs middleware in reverse order of registration, so main.py
    adds CORS first and RequestIDMiddleware last. The access log then sees the
    request id of the request it logs.
"""
