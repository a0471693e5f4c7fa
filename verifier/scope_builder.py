# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Translates a business level verification into selective disclosure scopes.

Each atomic condition becomes its own scope, the wallet proves every scope independently.
All scopes accept credentials of any issuer (`allowedIssuers: ["*"]`). Whether the issuer
is trusted is decided after the proof arrived, by the issuer registry.

iden3 query language
https://docs.privado.id/docs/verifier/verification-library/zk-query-language
"""

import datetime

from common.clock import shift_years, unix_seconds
from common.model.iden3comm import AuthorizationScope, CircuitId, ScopeQuery

from verifier.models import VerificationConditions, VerificationType


def age_conditions(conditions: VerificationConditions, now: datetime.datetime) -> list[dict]:
    """
    Age bounds as conditions on the date of birth (unix seconds).
    At least `min_age` means born before now minus `min_age` years.
    At most `max_age` means born after now minus `max_age` + 1 years.
    """
    result = []
    if conditions.min_age is not None:
        result.append({"dateOfBirth": {"$lt": unix_seconds(shift_years(now, -conditions.min_age))}})
    if conditions.max_age is not None:
        result.append({"dateOfBirth": {"$gt": unix_seconds(shift_years(now, -(conditions.max_age + 1)))}})
    return result


def score_conditions(conditions: VerificationConditions) -> list[dict]:
    result = []
    if conditions.min_score is not None:
        result.append({"cibilScore": {"$gte": conditions.min_score}})
    if conditions.max_score is not None:
        result.append({"cibilScore": {"$lte": conditions.max_score}})
    return result


def subject_conditions(verification_type: VerificationType, conditions: VerificationConditions, now: datetime.datetime) -> list[dict]:
    """One `credentialSubject` query per atomic condition of the verification type."""
    match verification_type:
        case VerificationType.degree:
            return [{"degreeTitle": {"$eq": conditions.degree_type}}] if conditions.degree_type else []
        case VerificationType.age:
            return age_conditions(conditions, now)
        case VerificationType.cibil:
            return score_conditions(conditions)
        case VerificationType.skill:
            skills = [skill.strip() for skill in conditions.required_skills or [] if skill and skill.strip()]
            return [{"skillSet": {"$eq": skill}} for skill in skills]
        case VerificationType.graduated:
            return [{"isGraduated": {"$eq": True}}]
        case VerificationType.custom:
            return [conditions.custom_query] if conditions.custom_query else []
    return []


def build_scopes(
    verification_type: VerificationType | None,
    conditions: VerificationConditions,
    credential_type: str,
    context_url: str,
    now: datetime.datetime,
    circuit_id: CircuitId = CircuitId.signature_v2,
) -> list[AuthorizationScope]:
    """
    Scopes with sequential ids starting at 1.
    Never empty: without any condition a single scope asks for the credential to exist.
    """
    queries = subject_conditions(verification_type, conditions, now) if verification_type else []
    if not queries:
        queries = [{}]
    return [
        AuthorizationScope(
            id=scope_id,
            circuitId=circuit_id,
            query=ScopeQuery(type=credential_type, context=context_url, credentialSubject=query),
        )
        for scope_id, query in enumerate(queries, start=1)
    ]
