"""
Headless OAuth - third-party sign-in for a headless commerce backend.

Exchanges provider authorization codes for verified identities, resolves
them to local customer accounts and issues session tokens.
"""

__version__ = "0.1.0"
