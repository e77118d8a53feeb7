"""
Custom throttle classes for API rate limiting.
"""

from rest_framework.throttling import UserRateThrottle


class ClaimRateThrottle(UserRateThrottle):
    """
    Throttle for claim and release requests.

    Reviewers poll the queue and retry lost claims; this caps a runaway
    client without getting in the way of normal triage.
    """

    scope = "claim"


class ReadOnlyThrottle(UserRateThrottle):
    """
    Liberal throttle for read-only operations.
    Allows high read rates but still prevents abuse.
    """

    scope = "read_only"
