"""Distribution Domain Engine - waterfall allocation and audit records.

This package provides the foundational layer for investment distributions:
- Waterfall structures, share classes and capital-provider positions
- Standard and per-class priority waterfall engines with IRR tier selection
- Snapshots of calculation inputs and per-deal hash-chained audit events

The domain layer is designed to be:
- Framework-agnostic (no web dependencies)
- Testable (pure calculations with Pydantic validation)
- Reproducible (frozen inputs replay to identical results)
"""

from .schemas import *  # noqa: F403, F401

__version__ = "0.1.0"
