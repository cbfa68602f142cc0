"""
Kernel layer: identity records, credential storage and the identity core.

Nothing in here imports from the HTTP layer.
"""
