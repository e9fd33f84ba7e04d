"""
VaultSync Test Suite.

This package contains:
- unit/: Unit tests (single components, in-memory remote store)
- integration/: Integration tests (VaultClient over the in-memory remote store)
"""
