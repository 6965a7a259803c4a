"""Coachflow — multi-agent orchestration for conversational financial coaching.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
