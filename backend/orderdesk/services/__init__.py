# Services package init
"""
OrderDesk Backend — Services Layer
====================================

What:  Business logic layer sitting between routes (HTTP) and database (persistence).
How:   Services receive the request's AsyncSession, apply business rules,
       and raise application exceptions from orderdesk.exceptions.

Service Inventory:
    - AuthService:  registration, login (token issue), password reset
    - OrderService: the order store facade (submit, lookups, listing, patches, deletes)
"""
