"""
Notedly Backend
=================

Permissioned note and board storage: users from external identity
providers, boards with a visibility tier, explicit per-user grants, and
notes addressed by content-derived identifiers.

Layers:
    ┌─────────────────────────────────────┐
    │   Routes / CLI (transport)          │  ← bearer token in, JSON out
    ├─────────────────────────────────────┤
    │   Services (identity, boards,       │  ← every read and write passes
    │   permissions, notes, access)       │    the Access Evaluator
    ├─────────────────────────────────────┤
    │   Models & Schemas                  │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database                          │  ← async sessions, error mapping
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
