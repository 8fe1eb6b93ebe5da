"""Services Layer — lifecycle mutations, view model, and runtime wiring.

Invariants:
    - Services talk to persistence only through the SessionStore protocol
    - Presentation state changes only in response to store notifications

Design Decisions:
    - Runtime built once at startup and shared by all routes
"""
