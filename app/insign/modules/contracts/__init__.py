"""
Contracts (read-mostly here; authoring lives in the contract service).

This backend sends signature-request mails, keeps a per-contract mail log and
owns the random viewer tokens used for read-only contract links.
"""
