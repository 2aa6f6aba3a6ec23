#!/usr/bin/env python3
"""
Exception taxonomy for scoring and match discovery.

- ValidationError: malformed input (embedding width, non-finite values, out-of-range traits)
- InvariantViolation: bad construction-time configuration (weight simplex, subspace table)
- NotFoundError: a required input is missing
- TransientUpstreamError: k-NN or store failure, propagated as-is
- MatchAlreadyExistsError: create-if-absent lost the race on a pair
- InvalidTransitionError: match lifecycle guard rejected a status change
- NotAuthorizedError: a user acted on a match that is not theirs to answer
"""


class RBSError(Exception):
    """Base exception for the scoring core."""
    pass


class ValidationError(RBSError, ValueError):
    """Raised when an input fails validation. Never partially computed."""
    pass


class InvariantViolation(RBSError):
    """Raised at construction when configuration breaks an invariant."""
    pass


class NotFoundError(RBSError):
    """Raised when a required profile, embedding or match is missing."""
    pass


class TransientUpstreamError(RBSError):
    """Raised when an external collaborator (vector search, store) fails."""
    pass


class MatchAlreadyExistsError(RBSError):
    """Raised by a match store when a row already exists for the pair."""

    def __init__(self, user_id, matched_user_id):
        super().__init__(f"Match already exists: {user_id} -> {matched_user_id}")
        self.user_id = user_id
        self.matched_user_id = matched_user_id


class InvalidTransitionError(RBSError):
    """Raised when a match status change is not allowed."""
    pass


class NotAuthorizedError(RBSError):
    """Raised when a user acts on a match they are not party to."""
    pass
