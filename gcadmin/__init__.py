"""
Giannicorp Admin - Source Package

Back office for a small subscription-sharing business: services, seats,
people, payments, projects and tasks, kept in a local store.

DESIGN PRINCIPLES:
1. Preview before commit (dry run, then import)
2. Fail early, fail visibly
3. A snapshot commits whole or not at all
4. Every backup operation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Giannicorp Admin Team"
