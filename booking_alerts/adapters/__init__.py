"""Adapter layer: document mapping, gateway implementations and triggers.

Import submodules directly; the application layer depends on `record`, so
this package does not pull in the trigger adapters eagerly.
"""
