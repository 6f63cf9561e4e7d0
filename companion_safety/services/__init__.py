"""Companion safety services.

- safety_service: Deterministic crisis-phrase classifier and crisis resources
- session_service: Session tracking and the break/escalation policy
- audit_service: Append-only audit trail for safety events
"""
