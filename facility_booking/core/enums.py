# facility_booking/core/enums.py
"""
Core enums for the facility booking engine.
"""

from enum import Enum


class ActorRole(str, Enum):
    """
    Roles the engine distinguishes when applying booking policy.

    USER is an ordinary customer, ADMIN a platform administrator and
    SYSTEM an internal caller such as the pending-expiry sweep.
    """

    USER = "user"
    ADMIN = "admin"
    SYSTEM = "system"
