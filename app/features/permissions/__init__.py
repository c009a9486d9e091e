"""
Permission grants feature module.

Default grant sets per role, plus request-time checks of a user's grants and
tenant scope.
"""
