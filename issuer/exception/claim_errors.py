# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Errors of the claim lifecycle, see `common.exception` for how they are rendered.
"""

from common.exception import ConflictError, GoneError, NotFoundError


class ClaimNotFoundError(NotFoundError):
    error = "claim_not_found"
    error_description = "No claim with the given id exists"


class ClaimRevokedError(GoneError):
    """The claim was revoked. The credential can not be fetched anymore."""

    error = "claim_revoked"
    error_description = "The claim has been revoked"


class IllegalClaimTransitionError(ConflictError):
    error = "illegal_claim_transition"
    error_description = "The claim can not change into the requested status"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"{current} -> {target}")
