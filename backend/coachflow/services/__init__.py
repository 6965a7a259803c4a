"""Services Layer — stateful orchestration components (imperative shell).

Invariants:
    - Each component owns its own in-process state; others see only copies
    - Components are wired by constructor injection in bootstrap.py
"""
