"""
Core modules for AquaFlow.

This package contains the tiered billing engine, alert derivation,
customer operations and the application state container.
"""
