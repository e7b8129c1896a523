"""
Feature modules live under this package.

Each module owns its models, service functions, JSON API and admin views,
while reusing platform primitives (auth, RBAC, audit, mail, DB session).
"""
