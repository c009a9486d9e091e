"""
Role hierarchy feature module.

Decides which accounts may create, promote or demote which roles, and within
which tenants.
"""
