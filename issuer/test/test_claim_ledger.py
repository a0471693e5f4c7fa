# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Tests of the claim lifecycle on an in memory database.
"""

import json

import pytest

from common.exception import ConcurrentModificationError, ValidationFailedError
from common.db.document_store import SqlDocumentStore
from common.iden3comm import MessageBuilder
from common.test_helpers.clock import FakeClock
from common.test_helpers.database import sqlite_session_local
from common.test_helpers.keys import generate_key_configuration
from common.test_helpers.store import RacingDocumentStore
from common.test_helpers import wallet

import issuer.config as conf
from issuer import claim_ledger, issuance_backend
from issuer.builder import CredentialBuilder
from issuer.exception import ClaimNotFoundError, ClaimRevokedError
from issuer.models import ClaimStatus, CreateClaimRequest

NATIONAL_ID = "123456789010"


class RecordingBackend(issuance_backend.IssuanceBackend):
    """Issuer node double, returns a fixed credential or fails when `fail` is set."""

    mode = "live"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.requests: list[dict] = []

    def issue(self, issuer_did: str, request: dict) -> issuance_backend.BackendCredential:
        self.requests.append(request)
        if self.fail:
            raise issuance_backend.IssuanceBackendError("connection refused")
        return issuance_backend.BackendCredential(id="node-credential-1", credential={"id": "node-credential-1", "credentialSubject": request["credentialSubject"]})

    def is_reachable(self) -> bool:
        return not self.fail


def claim_request(**overrides) -> CreateClaimRequest:
    data = {
        "holder_did": wallet.HOLDER_DID,
        "full_name": "Asha Verma",
        "national_id": NATIONAL_ID,
        # 25 years old on the fake clock date
        "date_of_birth": "1999-01-20",
        "skill_set": "Electrician",
        "is_graduated": True,
        "cibil_score": 750,
        "institution_name": "ITI Pune",
        "degree_title": "Diploma",
        "completion_year": 2019,
    }
    data.update(overrides)
    return CreateClaimRequest(**data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store():
    session = sqlite_session_local()()
    yield SqlDocumentStore(session)
    session.close()


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def ledger(store, backend, clock) -> claim_ledger.ClaimLedger:
    return make_ledger(store, backend, clock)


def make_ledger(store, backend, clock) -> claim_ledger.ClaimLedger:
    config = conf.IssuerConfig()
    config.external_url = "https://issuer.example"
    return claim_ledger.ClaimLedger(
        store=store,
        config=config,
        backend=backend,
        builder=CredentialBuilder(config, generate_key_configuration()),
        messages=MessageBuilder(config.wallet_universal_link_url),
        clock=clock,
    )


def test_invalid_checksum_creates_nothing(ledger, store):
    with pytest.raises(ValidationFailedError) as e:
        ledger.create(claim_request(national_id="123456789012"))
    assert "checksum" in e.value.additional_error_description
    assert store.find(claim_ledger.CLAIM_COLLECTION) == []


def test_all_validation_failures_are_reported(ledger):
    with pytest.raises(ValidationFailedError) as e:
        ledger.create(claim_request(holder_did=None, full_name="A", date_of_birth="2020-01-01", national_id="12"))
    fields = {detail["field"] for detail in e.value.details}
    assert fields == {"holder_did", "full_name", "national_id", "date_of_birth"}


def test_create_returns_pending_offer(ledger, backend):
    response = ledger.create(claim_request())
    assert response.status == ClaimStatus.pending
    assert response.reference_id.startswith("REF-")
    assert response.deep_link.startswith("iden3comm://?i_m=")
    assert not response.locally_signed

    offer = json.loads(response.qr_code_data)
    assert offer["body"]["url"] == f"https://issuer.example/issuer/claim/{response.claim_id}/fetch"
    assert offer["body"]["credentials"][0]["id"] == response.claim_id
    assert len(backend.requests) == 1
    assert backend.requests[0]["credentialSubject"]["cibilScore"] == 750


def test_claims_are_not_deduplicated_by_holder(ledger):
    first = ledger.create(claim_request())
    second = ledger.create(claim_request(skill_set="Welder", cibil_score=None))
    assert first.claim_id != second.claim_id
    assert first.reference_id != second.reference_id

    ledger.revoke(first.claim_id)
    assert ledger.get(first.claim_id).status == ClaimStatus.revoked
    assert ledger.get(second.claim_id).status == ClaimStatus.pending
    assert ledger.get(second.claim_id).credential_subject.cibilScore == -1


def test_raw_national_id_is_never_stored(ledger, store):
    ledger.create(claim_request(national_id="1234 5678 9010"))
    stored = json.dumps([document.body for document in store.find(claim_ledger.CLAIM_COLLECTION)])
    assert NATIONAL_ID not in stored
    assert "1234 5678 9010" not in stored
    assert "nationalIdHash" in stored


def test_subject_keeps_date_of_birth_as_unix_seconds(ledger):
    claim = ledger.get(ledger.create(claim_request(date_of_birth="2000-01-01")).claim_id)
    assert claim.credential_subject.dateOfBirth == 946684800


def test_backend_failure_signs_locally(ledger, backend):
    backend.fail = True
    response = ledger.create(claim_request())
    assert response.locally_signed

    claim = ledger.get(response.claim_id)
    assert claim.backend_credential_id is None
    credential = claim.credential
    assert credential["id"] == f"urn:uuid:{claim.id}"
    assert credential["credentialSubject"]["nationalIdHash"] == claim.credential_subject.nationalIdHash
    assert credential["credentialStatus"]["revocationNonce"] == claim.revocation_nonce
    assert credential["credentialStatus"]["id"] == f"https://issuer.example/issuer/revocation/{claim.revocation_nonce}"
    assert credential["proof"][0]["jws"].count(".") == 2


def test_fetch_issues_once(ledger, clock):
    claim_id = ledger.create(claim_request()).claim_id
    clock.advance(minutes=5)

    first = ledger.process_fetch(claim_id, wallet.fetch_request(claim_id))
    second = ledger.process_fetch(claim_id, wallet.fetch_request(claim_id))
    assert first == second
    assert first["thid"] == claim_id
    assert first["body"]["credential"]["id"] == "node-credential-1"

    claim = ledger.get(claim_id)
    assert claim.status == ClaimStatus.issued
    assert claim.issued_at == clock.now
    assert claim.issued_to == wallet.HOLDER_DID


def test_fetch_without_message_uses_claim_holder(ledger):
    claim_id = ledger.create(claim_request()).claim_id
    ledger.process_fetch(claim_id, None)
    assert ledger.get(claim_id).issued_to == wallet.HOLDER_DID


@pytest.mark.parametrize("fetched_before_revocation", [False, True])
def test_fetch_of_revoked_claim(ledger, clock, fetched_before_revocation):
    claim_id = ledger.create(claim_request()).claim_id
    if fetched_before_revocation:
        ledger.process_fetch(claim_id, wallet.fetch_request(claim_id))
    issued_at = ledger.get(claim_id).issued_at
    clock.advance(minutes=5)
    ledger.revoke(claim_id, "Fraud")

    with pytest.raises(ClaimRevokedError):
        ledger.process_fetch(claim_id, wallet.fetch_request(claim_id))
    claim = ledger.get(claim_id)
    assert claim.status == ClaimStatus.revoked
    assert claim.issued_at == issued_at
    assert (claim.issued_at is not None) == fetched_before_revocation


def test_fetch_of_unknown_claim(ledger):
    with pytest.raises(ClaimNotFoundError):
        ledger.process_fetch("unknown", None)


def test_concurrent_fetch_returns_stored_issuance(ledger, store, backend, clock):
    claim_id = ledger.create(claim_request()).claim_id
    competing = []
    racing = RacingDocumentStore(store, competing_write=lambda: competing.append(ledger.process_fetch(claim_id, wallet.fetch_request(claim_id))))
    racing_ledger = make_ledger(racing, backend, clock)

    issuance = racing_ledger.process_fetch(claim_id, wallet.fetch_request(claim_id))
    assert racing.replace_calls == 1
    assert issuance == competing[0]
    assert ledger.get(claim_id).issuance == competing[0]
    assert ledger.get(claim_id).status == ClaimStatus.issued


def test_fetch_gives_up_after_repeated_conflicts(ledger, store, backend, clock):
    claim_id = ledger.create(claim_request()).claim_id
    racing = RacingDocumentStore(store, always_lose=True)

    with pytest.raises(ConcurrentModificationError):
        make_ledger(racing, backend, clock).process_fetch(claim_id, None)
    assert racing.replace_calls == claim_ledger.MAX_WRITE_ATTEMPTS
    assert ledger.get(claim_id).status == ClaimStatus.pending


def test_double_revoke_keeps_first_revocation(ledger, clock):
    claim_id = ledger.create(claim_request()).claim_id
    first = ledger.revoke(claim_id, "Fraud")
    clock.advance(hours=1)
    second = ledger.revoke(claim_id, "Other reason")
    assert second.revoked_at == first.revoked_at
    assert second.revocation_reason == "Fraud"
    assert ledger.revoke("unknown") is None


def test_revocation_status_and_nonce_lookup(ledger):
    claim_id = ledger.create(claim_request()).claim_id
    claim = ledger.get(claim_id)
    assert not ledger.revocation_status(claim_id).is_revoked
    assert ledger.find_by_revocation_nonce(claim.revocation_nonce).id == claim_id

    ledger.revoke(claim_id, "Expired contract")
    status = ledger.revocation_status(claim_id)
    assert status.is_revoked
    assert status.reason == "Expired contract"
    assert ledger.find_by_revocation_nonce(claim.revocation_nonce + 1) is None


def test_offer_links_of_revoked_claim(ledger):
    claim_id = ledger.create(claim_request()).claim_id
    assert ledger.offer_links(claim_id).claim_id == claim_id
    ledger.revoke(claim_id)
    with pytest.raises(ClaimRevokedError):
        ledger.offer_links(claim_id)


def test_find_and_holder_listing(ledger):
    ids = [ledger.create(claim_request()).claim_id for _ in range(3)]
    other = ledger.create(claim_request(holder_did="did:polygonid:polygon:amoy:2qOther")).claim_id
    ledger.revoke(ids[0])

    page = ledger.find(limit=2)
    assert len(page.claims) == 2
    assert page.has_more
    assert not ledger.find(limit=2, offset=2).has_more
    assert [c.id for c in ledger.find(ClaimStatus.revoked).claims] == [ids[0]]
    assert {c.id for c in ledger.for_holder(wallet.HOLDER_DID)} == set(ids)
    assert [c.id for c in ledger.for_holder("did:polygonid:polygon:amoy:2qOther")] == [other]


def test_stats(ledger, clock):
    pending = ledger.create(claim_request()).claim_id
    issued = ledger.create(claim_request(skill_set="Welder")).claim_id
    revoked = ledger.create(claim_request()).claim_id
    ledger.process_fetch(issued, None)
    ledger.revoke(revoked)

    stats = ledger.stats()
    assert (stats.total, stats.pending, stats.issued, stats.revoked) == (3, 1, 1, 1)
    assert stats.issued_today == 1
    assert stats.skill_breakdown == {"Electrician": 2, "Welder": 1}
    assert ledger.get(pending).status == ClaimStatus.pending

    clock.advance(days=1)
    assert ledger.stats().issued_today == 0


def test_issued_today_leaves_out_revoked_claims(ledger):
    kept = ledger.create(claim_request()).claim_id
    withdrawn = ledger.create(claim_request()).claim_id
    ledger.process_fetch(kept, None)
    ledger.process_fetch(withdrawn, None)
    assert ledger.stats().issued_today == 2

    ledger.revoke(withdrawn, "Issued in error")
    assert ledger.stats().issued_today == 1
