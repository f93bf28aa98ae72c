"""
Core domain models, numerical primitives, contracts and ambient utilities.

This module contains the foundational building blocks shared by the payment
and basket aggregators; it is independent of the remote store.
"""
