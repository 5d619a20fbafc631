"""
FastAPI routers for all API endpoints.

Each module defines the router for one resource (invoices, payments,
transactions, categories, customers, settings, users, health). Handlers
translate ServiceError into HTTPException and map ORM rows into response
models.
"""
