"""
Domain layer for the tenant export service.

- export: whole-tenant traversal, job orchestration and result tracking

Each domain follows the structure:
- entities: Domain objects and value objects
- services: Business logic and use cases
"""
