"""
Core - shared infrastructure for the Networkk engine.

This package provides:
- Base models with timestamps and optimistic locking
- The engine error taxonomy
- The caller identity context (Actor)
"""
