"""
Billing Kernel

Shared infrastructure for the recurring billing engine:
- Injectable clock and business-timezone calendar
- Structured JSON logging
- Typed exception hierarchy
- SQLAlchemy declarative base, engine and money rounding
"""

__version__ = "0.1.0"
