# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Validation of create claim requests.

Collects every failure instead of stopping at the first one, so the operator can
correct the whole form in one go.
"""

import datetime
import re

from common import privacy
from common.exception import FieldError

from issuer.models import CreateClaimRequest

_DID = re.compile(r"^did:[a-z0-9]+:.+$")

MIN_AGE = 10
MAX_AGE = 120
MIN_SCORE = 300
MAX_SCORE = 900
SCORE_NOT_APPLICABLE = -1
MIN_COMPLETION_YEAR = 1900


def parse_date_of_birth(value: str) -> datetime.date | None:
    try:
        return datetime.date.fromisoformat(value.strip())
    except ValueError:
        return None


def age_on(date_of_birth: datetime.date, day: datetime.date) -> int:
    """Completed years of life on `day`."""
    return day.year - date_of_birth.year - ((day.month, day.day) < (date_of_birth.month, date_of_birth.day))


def _validate_national_id(national_id: str | None) -> list[FieldError]:
    if not national_id or not national_id.strip():
        return [FieldError(field="national_id", message="national_id is required")]
    try:
        privacy.normalize_national_id(national_id)
    except privacy.InvalidNationalIdFormatError as e:
        return [FieldError(field="national_id", message=str(e))]
    if not privacy.validate_checksum(national_id):
        return [FieldError(field="national_id", message="Invalid national id checksum")]
    return []


def _validate_date_of_birth(date_of_birth: str | None, today: datetime.date) -> list[FieldError]:
    if not date_of_birth:
        return [FieldError(field="date_of_birth", message="date_of_birth is required")]
    parsed = parse_date_of_birth(date_of_birth)
    if parsed is None:
        return [FieldError(field="date_of_birth", message="date_of_birth must be an ISO date (YYYY-MM-DD)")]
    if not MIN_AGE <= age_on(parsed, today) <= MAX_AGE:
        return [FieldError(field="date_of_birth", message=f"Age must be between {MIN_AGE} and {MAX_AGE} years")]
    return []


def validate_create_claim(request: CreateClaimRequest, now: datetime.datetime) -> list[FieldError]:
    """All problems of the request, empty if it can be issued."""
    errors: list[FieldError] = []

    if not request.holder_did:
        errors.append(FieldError(field="holder_did", message="holder_did is required"))
    elif not _DID.match(request.holder_did):
        errors.append(FieldError(field="holder_did", message="holder_did must be a DID (did:<method>:<identifier>)"))

    if not request.full_name or len(request.full_name.strip()) < 2:
        errors.append(FieldError(field="full_name", message="full_name must be at least 2 characters"))

    errors.extend(_validate_national_id(request.national_id))
    errors.extend(_validate_date_of_birth(request.date_of_birth, now.date()))

    if not request.skill_set or not request.skill_set.strip():
        errors.append(FieldError(field="skill_set", message="skill_set is required"))

    if request.is_graduated is None:
        errors.append(FieldError(field="is_graduated", message="is_graduated is required"))

    if request.cibil_score is not None and request.cibil_score != SCORE_NOT_APPLICABLE and not MIN_SCORE <= request.cibil_score <= MAX_SCORE:
        errors.append(FieldError(field="cibil_score", message=f"cibil_score must be between {MIN_SCORE} and {MAX_SCORE}, or {SCORE_NOT_APPLICABLE} if not applicable"))

    max_completion_year = now.year + 10
    if request.completion_year is not None and not MIN_COMPLETION_YEAR <= request.completion_year <= max_completion_year:
        errors.append(FieldError(field="completion_year", message=f"completion_year must be between {MIN_COMPLETION_YEAR} and {max_completion_year}"))

    return errors
