"""Core module - configuration and observability shared by every migration step.

Domain logic lives in the top-level packages (legacy_source, target_store,
identity_resolver, reconciliation). This package holds only what they all use.
"""

__version__ = "1.0.0"
