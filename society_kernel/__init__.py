"""
Society Kernel

Workflow core for residential-community financial administration:
- Closed status vocabulary for expenses, income, petty cash and CAM entries
- Role-gated transition table with a correction cycle
- Append-only, hash-chained audit trail
- Atomic daily quota for correction requests
- All-or-nothing bulk transitions
"""

__version__ = "0.1.0"
