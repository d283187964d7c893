# Routes package init
"""
OrderDesk Backend — API Routes Package
========================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - auth.py:    POST /register, POST /login, PATCH /update-password,
                  GET /dashboard (bearer token required)
    - orders.py:  order submission, listing, search, patching, deletion
    - health.py:  GET /, GET /health

Routes are thin: they extract request data, call a service, and shape the
response. Business rules live in services/.
"""
