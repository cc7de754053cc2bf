"""
Database utilities, migrations, and seeding.

Runtime DB access lives in the vault service. This package is for repo-level DB operations:
- Alembic migrations config
- Deterministic demo seed for local development
"""
