"""
Shared, cross-cutting code for the API.

`core/` holds small building blocks that features use (DB wiring, settings,
logging, outcome types, the service registry). Keep feature-specific SQL and
business logic in the corresponding feature package (e.g. `users/`).
"""
