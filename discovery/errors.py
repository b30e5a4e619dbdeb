"""
Error taxonomy for the discovery engine.

Precondition failures (an incomplete questionnaire, a cache miss) are not
errors and are signalled by ``None`` or an empty list. The exceptions below
cover the cases a caller must be able to tell apart from "no matches yet".
"""


class DiscoveryError(Exception):
    """Base class for all discovery engine errors."""


class UpstreamUnavailable(DiscoveryError):
    """Raised when the repository or the cache backend cannot be reached."""


class MemberNotFound(DiscoveryError, LookupError):
    """Raised when the requesting member does not exist."""

    def __init__(self, member_id: str):
        super().__init__(f"Member not found: {member_id}")
        self.member_id = member_id


class OperationCancelled(DiscoveryError):
    """Raised when the caller's deadline passed or it cancelled the request."""


class Blocked(DiscoveryError):
    """Raised by a privacy filter when the viewer may not see a profile."""


class MalformedCandidate(DiscoveryError):
    """A candidate record failed validation and must be skipped."""

    def __init__(self, candidate_id: str, reason: str):
        super().__init__(f"Malformed candidate {candidate_id}: {reason}")
        self.candidate_id = candidate_id
        self.reason = reason
