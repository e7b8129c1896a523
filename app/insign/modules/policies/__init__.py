"""
Policies module (privacy policy, terms of service).

At most one policy per type is active. The service deactivates same-type
siblings in the same transaction before activating a row, and a partial unique
index on (type) WHERE is_active backs that up for concurrent admins.
"""
