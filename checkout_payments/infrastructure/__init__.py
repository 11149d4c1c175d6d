"""
Infrastructure Layer - Replaceable Adapters

This layer contains:
- Persistence (in-memory and SQLAlchemy repositories)
- The settlement gateway (simulated)
- Clock and identifier generation

The domain layer knows nothing about this layer.
"""
