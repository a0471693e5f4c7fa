# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Errors of the verification session lifecycle.

`VerificationAlreadyResolvedError` (409) and `VerificationExpiredError` (410) differ:
the first means another proof already decided the session, the second that no proof
arrived in time and a new verification has to be opened.
"""

from common.exception import ConflictError, GoneError, NotFoundError


class VerificationNotFoundError(NotFoundError):
    error = "verification_not_found"
    error_description = "The verification with the specified identifier wasn't found"


class VerificationAlreadyResolvedError(ConflictError):
    error = "verification_already_resolved"
    error_description = "The verification has already received a proof"


class VerificationExpiredError(GoneError):
    error = "verification_expired"
    error_description = "The verification has expired, open a new one"
