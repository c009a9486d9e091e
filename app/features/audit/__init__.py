"""
Audit trail feature module.

Append-only log of privileged actions (account creation, role changes,
authentication events).
"""
