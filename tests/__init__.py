"""Test package marker.

What:
  Marks ``tests`` as a package so pytest resolves the root ``conftest`` and the
  CLI wiring tests deterministically.

Invariants & Safety:
  - Importing ``tests`` must stay side-effect free.
"""
