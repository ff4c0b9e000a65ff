"""
Alumni portal backend package.

Modules:
- config: environment-variable settings
- db: PostgreSQL connection pool + query helpers
- auth_utils: password hashing helpers
- uploads: local-disk storage for uploaded photos
- schemas: Pydantic models for the REST API
- main: FastAPI application factory and routes
- cli: serve / init-db entry point
"""
