"""
feature-verifier package root

File: src/feature_verifier/__init__.py

Purpose
- Verification orchestration engine: runs automated checks, asks external AI agents
  to judge acceptance criteria, and records every run in a per-feature result store.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
