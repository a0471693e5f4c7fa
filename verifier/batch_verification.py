# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Batch verification of issued credentials, e.g. for recruitment drives.

Looks the credentials up in the claims the issuer stored, no wallet is involved.
The issuer of every credential is cross-checked with the issuer registry.
"""

import logging
from typing import Annotated

from fastapi import Depends

from common.db import document_store
from common.db.document_store import DocumentStore
from common.exception import ValidationFailedError
from common import registry_client
from common.registry_client import IssuerRegistry

from verifier.logging import VerifierOperationsLogEntry
from verifier.models import (
    BatchItemStatus,
    BatchRequirements,
    BatchVerificationItem,
    BatchVerificationRequest,
    BatchVerificationResponse,
    BatchVerificationResult,
)
from verifier.verification_ledger import is_issuer_authorized

_logger = logging.getLogger(__name__)

CLAIM_COLLECTION = "claim"
"""Collection the issuer stores its claims in."""
MAX_BATCH_SIZE = 100
NO_SCORE = -1


def meets_requirements(subject: dict, requirements: BatchRequirements | None) -> bool:
    if requirements is None:
        return True
    if requirements.is_graduated is not None and subject.get("isGraduated") != requirements.is_graduated:
        return False
    if requirements.min_cibil_score is not None:
        score = subject.get("cibilScore", NO_SCORE)
        if score == NO_SCORE or score < requirements.min_cibil_score:
            return False
    if requirements.skill_set and requirements.skill_set.lower() not in str(subject.get("skillSet", "")).lower():
        return False
    return True


def credential_issuer(claim: dict) -> str | None:
    issuer = (claim.get("credential") or {}).get("issuer")
    if isinstance(issuer, dict):
        issuer = issuer.get("id")
    return issuer if isinstance(issuer, str) else None


class BatchVerifier:
    def __init__(self, store: DocumentStore, registry: IssuerRegistry) -> None:
        self._store = store
        self._registry = registry

    def _find_claim(self, claim_id: str) -> dict | None:
        """Claim by its id, else by its reference id."""
        stored = self._store.get(CLAIM_COLLECTION, claim_id)
        if stored is not None:
            return stored.body
        documents = self._store.find(CLAIM_COLLECTION, {"reference_id": claim_id}, limit=1)
        return documents[0].body if documents else None

    def _verify_item(self, item: BatchVerificationItem) -> BatchVerificationResult:
        claim = self._find_claim(item.claim_id)
        if claim is None:
            return BatchVerificationResult(
                claim_id=item.claim_id,
                verified=False,
                issuer_authorized=False,
                status=BatchItemStatus.not_found,
                meets_requirements=False,
                error="Claim not found",
            )
        status = BatchItemStatus(claim["status"])
        if status == BatchItemStatus.revoked:
            return BatchVerificationResult(
                claim_id=item.claim_id,
                verified=False,
                issuer_authorized=False,
                status=status,
                meets_requirements=False,
                error="Credential has been revoked",
            )
        subject = claim.get("credential_subject") or {}
        issuer_authorized = is_issuer_authorized(self._registry, credential_issuer(claim))
        meets = meets_requirements(subject, item.requirements)
        return BatchVerificationResult(
            claim_id=item.claim_id,
            verified=status == BatchItemStatus.issued and issuer_authorized and meets,
            issuer_authorized=issuer_authorized,
            status=status,
            meets_requirements=meets,
            holder_name=subject.get("fullName"),
            skill_set=subject.get("skillSet"),
        )

    def verify(self, request: BatchVerificationRequest) -> BatchVerificationResponse:
        """
        Verifies every credential of the batch on its own.
        A failing lookup marks its item as `error`, the rest of the batch is still verified.
        """
        if not request.verifications:
            raise ValidationFailedError.single("verifications", "verifications must not be empty")
        if len(request.verifications) > MAX_BATCH_SIZE:
            raise ValidationFailedError.single("verifications", f"Maximum {MAX_BATCH_SIZE} verifications per batch")

        results = []
        for item in request.verifications:
            try:
                results.append(self._verify_item(item))
            except Exception as e:
                _logger.exception(f"Batch verification of {item.claim_id} failed")
                results.append(
                    BatchVerificationResult(
                        claim_id=item.claim_id,
                        verified=False,
                        issuer_authorized=False,
                        status=BatchItemStatus.error,
                        meets_requirements=False,
                        error=str(e) or "Processing failed",
                    )
                )

        verified = sum(1 for result in results if result.verified)
        _logger.info(
            VerifierOperationsLogEntry(
                message=f"Batch of {len(results)} verified, {verified} passed.",
                status=VerifierOperationsLogEntry.Status.success,
                operation=VerifierOperationsLogEntry.Operation.verification,
                step=VerifierOperationsLogEntry.Step.verification_batch,
            )
        )
        return BatchVerificationResponse(total=len(results), verified=verified, failed=len(results) - verified, results=results)


def get_batch_verifier(store: document_store.inject, registry: registry_client.inject) -> BatchVerifier:
    return BatchVerifier(store, registry)


inject = Annotated[BatchVerifier, Depends(get_batch_verifier)]
