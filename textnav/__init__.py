"""
textnav - Error finding for dictated text, read aloud one issue at a time.

This package provides:
- Local spelling and grammar heuristics (always available, no network)
- A remote rewrite client with retries and response validation
- Word-level alignment of a rewrite into localized error reports
- Reconciliation under a timeout with local fallback, dedup and a 5-report cap
- Learned user corrections reused by later checks

Main entry point: python -m textnav
"""

__version__ = "1.0.0"
