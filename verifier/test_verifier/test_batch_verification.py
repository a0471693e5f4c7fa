# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Tests of the batch verification against claims stored by the issuer.
"""

import datetime

import pytest

from common.db.document_store import SqlDocumentStore
from common.exception import ValidationFailedError
from common.test_helpers.database import sqlite_session_local
from common.test_helpers.registry import AUTHORIZED_ISSUER_ADDRESS, UNAUTHORIZED_ISSUER_ADDRESS, FakeIssuerRegistry
from common.test_helpers import wallet

from issuer.models import Claim, ClaimStatus, CredentialSubject

from verifier import batch_verification
from verifier.models import BatchItemStatus, BatchRequirements, BatchVerificationItem, BatchVerificationRequest

AUTHORIZED_ISSUER = f"did:pkh:eip155:80002:{AUTHORIZED_ISSUER_ADDRESS}"
UNAUTHORIZED_ISSUER = f"did:pkh:eip155:80002:{UNAUTHORIZED_ISSUER_ADDRESS}"
NOW = datetime.datetime(2024, 6, 15, 10, 30, tzinfo=datetime.timezone.utc)


def store_claim(store, claim_id: str, status: ClaimStatus = ClaimStatus.issued, issuer: str = AUTHORIZED_ISSUER, **subject) -> Claim:
    attributes = {
        "id": wallet.HOLDER_DID,
        "type": "IndianWorkforceCredential",
        "referenceId": f"REF-1718447400000-{claim_id.removeprefix('claim-').upper():0>6}",
        "nationalIdHash": "ab" * 32,
        "fullName": "Asha Verma",
        "dateOfBirth": 916790400,
        "skillSet": "Electrician, Solar Installation",
        "isGraduated": True,
        "cibilScore": 750,
    }
    attributes.update(subject)
    claim = Claim(
        id=claim_id,
        reference_id=attributes["referenceId"],
        holder_did=wallet.HOLDER_DID,
        credential_subject=CredentialSubject(**attributes),
        credential={"id": f"urn:uuid:{claim_id}", "issuer": issuer},
        offer={},
        status=status,
        created_at=NOW,
        updated_at=NOW,
        issued_at=NOW if status != ClaimStatus.pending else None,
        revocation_nonce=42,
    )
    store.create(batch_verification.CLAIM_COLLECTION, claim_id, claim.model_dump(mode="json"))
    return claim


def batch(*items) -> BatchVerificationRequest:
    return BatchVerificationRequest(
        verifications=[BatchVerificationItem(claim_id=claim_id, requirements=requirements) for claim_id, requirements in items]
    )


@pytest.fixture
def store():
    session = sqlite_session_local()()
    yield SqlDocumentStore(session)
    session.close()


@pytest.fixture
def registry() -> FakeIssuerRegistry:
    return FakeIssuerRegistry(authorized=[AUTHORIZED_ISSUER_ADDRESS])


@pytest.fixture
def verifier(store, registry) -> batch_verification.BatchVerifier:
    return batch_verification.BatchVerifier(store, registry)


def test_issued_claims_verify(verifier, store):
    issued = store_claim(store, "claim-1")
    store_claim(store, "claim-2", status=ClaimStatus.pending)

    response = verifier.verify(batch(("claim-1", None), (issued.reference_id, None), ("claim-2", None)))
    assert (response.total, response.verified, response.failed) == (3, 2, 1)
    first, by_reference, pending = response.results
    assert first.verified and first.issuer_authorized and first.meets_requirements
    assert first.holder_name == "Asha Verma"
    assert by_reference.claim_id == issued.reference_id
    assert by_reference.verified
    assert pending.status == BatchItemStatus.pending
    assert not pending.verified


def test_unknown_and_revoked_claims(verifier, store):
    store_claim(store, "claim-1", status=ClaimStatus.revoked)
    response = verifier.verify(batch(("claim-1", None), ("claim-unknown", None)))
    revoked, unknown = response.results
    assert revoked.status == BatchItemStatus.revoked
    assert revoked.error == "Credential has been revoked"
    assert unknown.status == BatchItemStatus.not_found
    assert not revoked.verified and not unknown.verified
    assert response.failed == 2


@pytest.mark.parametrize(
    "requirements, meets",
    [
        (BatchRequirements(is_graduated=True), True),
        (BatchRequirements(is_graduated=False), False),
        (BatchRequirements(min_cibil_score=750), True),
        (BatchRequirements(min_cibil_score=751), False),
        (BatchRequirements(skill_set="solar"), True),
        (BatchRequirements(skill_set="Plumber"), False),
        (BatchRequirements(is_graduated=True, min_cibil_score=700, skill_set="ELECTRICIAN"), True),
    ],
)
def test_requirements(verifier, store, requirements, meets):
    store_claim(store, "claim-1")
    result = verifier.verify(batch(("claim-1", requirements))).results[0]
    assert result.meets_requirements == meets
    assert result.verified == meets


def test_claim_without_score_misses_minimum_score(verifier, store):
    store_claim(store, "claim-1", cibilScore=-1)
    result = verifier.verify(batch(("claim-1", BatchRequirements(min_cibil_score=0)))).results[0]
    assert not result.meets_requirements


def test_issuer_is_checked_in_registry(verifier, store, registry):
    store_claim(store, "claim-1", issuer=UNAUTHORIZED_ISSUER)
    store_claim(store, "claim-2", issuer="did:polygonid:polygon:amoy:2qIssuer")

    unauthorized, without_address = verifier.verify(batch(("claim-1", None), ("claim-2", None))).results
    assert not unauthorized.issuer_authorized
    assert not unauthorized.verified
    assert without_address.verified
    assert registry.checked == [UNAUTHORIZED_ISSUER_ADDRESS]

    registry.available = False
    assert not verifier.verify(batch(("claim-1", None))).results[0].issuer_authorized


def test_failing_item_does_not_stop_batch(verifier, store, registry):
    store_claim(store, "claim-1")
    store_claim(store, "claim-2")
    checks = iter([RuntimeError("rpc exploded"), True])

    def flaky_check(address: str) -> bool:
        outcome = next(checks)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    registry.is_authorized = flaky_check
    failed, verified = verifier.verify(batch(("claim-1", None), ("claim-2", None))).results
    assert failed.status == BatchItemStatus.error
    assert failed.error == "rpc exploded"
    assert verified.verified


@pytest.mark.parametrize("size", [0, batch_verification.MAX_BATCH_SIZE + 1])
def test_batch_size_limits(verifier, size):
    with pytest.raises(ValidationFailedError) as e:
        verifier.verify(batch(*[(f"claim-{i}", None) for i in range(size)]))
    assert e.value.details[0]["field"] == "verifications"
