"""
Accounts module.

Back-office admin accounts (create, edit, enable/disable, delete) and a
read-only view of end users.
"""
