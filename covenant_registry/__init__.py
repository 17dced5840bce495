"""
Covenant Witness Registry

Accepts witness registrations up to the covenant's capacity, assigns each
accepted registrant a gapless, strictly increasing witness number, fires
one-time milestone broadcasts as the population grows, and reports launch
readiness against a fixed deadline.

Registry guarantees:
- Witness numbers are unique, dense and ordered by commit
- An identifier is accepted at most once, ever
- Each milestone fires exactly once
- Notification delivery never blocks or rolls back a registration
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
