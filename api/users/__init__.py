"""
Users feature: SQL, service and HTTP endpoints for the `users` table.
"""
