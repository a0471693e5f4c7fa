# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Claim lifecycle: creation, delivery to the wallet and revocation.

Claims are documents of the `claim` collection. Every change is a compare-and-set on
the document version, a lost race is retried on a fresh read.
"""

import collections
import logging
import secrets
import string
import uuid
from typing import Annotated, Callable

from fastapi import Depends

from common import privacy
from common.clock import Clock, start_of_day, unix_seconds, utcnow
from common.db import document_store
from common.db.document_store import DocumentStore, StoredDocument
from common.exception import ConcurrentModificationError, ValidationFailedError
from common.iden3comm import MessageBuilder
import common.key_configuration as key

import issuer.config as conf
from issuer import issuance_backend
from issuer.builder import CredentialBuilder
from issuer.exception import ClaimNotFoundError, ClaimRevokedError, IllegalClaimTransitionError
from issuer.logging import IssuerOperationsLogEntry
from issuer.models import (
    Claim,
    ClaimList,
    ClaimStats,
    ClaimStatus,
    ClaimSummary,
    CreateClaimRequest,
    CreateClaimResponse,
    RevocationStatus,
)
from issuer.validation import validate_create_claim

_logger = logging.getLogger(__name__)

CLAIM_COLLECTION = "claim"
MAX_WRITE_ATTEMPTS = 3
REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def new_reference_id(clock: Clock = utcnow) -> str:
    """Human friendly correlation id, e.g. REF-1718000000000-7GQ2XK"""
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(6))
    return f"REF-{int(clock().timestamp() * 1000)}-{suffix}"


def new_revocation_nonce() -> int:
    # Stays within the integer range json consumers can represent exactly
    return secrets.randbits(53)


def _to_body(claim: Claim) -> dict:
    return claim.model_dump(mode="json")


def _log(message: str, step: IssuerOperationsLogEntry.Step, claim_id: str, status=IssuerOperationsLogEntry.Status.success, **fields) -> None:
    _logger.info(
        IssuerOperationsLogEntry(
            message=message,
            status=status,
            operation=IssuerOperationsLogEntry.Operation.issuance,
            step=step,
            management_id=claim_id,
            **fields,
        )
    )


class ClaimLedger:
    def __init__(
        self,
        store: DocumentStore,
        config: conf.IssuerConfig,
        backend: issuance_backend.IssuanceBackend,
        builder: CredentialBuilder,
        messages: MessageBuilder,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._config = config
        self._backend = backend
        self._builder = builder
        self._messages = messages
        self._clock = clock

    ############
    # Creation #
    ############

    def create(self, request: CreateClaimRequest) -> CreateClaimResponse:
        """
        Validates the request, issues the credential and stores the pending claim.

        If the issuer node fails the credential is signed locally, the caller always gets a usable offer.
        Raises `ValidationFailedError` listing every invalid field, nothing is stored in that case.
        """
        now = self._clock()
        errors = validate_create_claim(request, now)
        if errors:
            raise ValidationFailedError(errors)

        claim_id = str(uuid.uuid4())
        reference_id = new_reference_id(self._clock)
        national_id_hash = privacy.hash_national_id(request.national_id, self._config.national_id_hash_salt)
        subject = self._builder.subject(request, reference_id, national_id_hash)
        revocation_nonce = new_revocation_nonce()

        backend_credential_id = None
        try:
            issued = self._backend.issue(self._config.issuer_did, self._builder.issuer_node_request(subject, now))
            credential = issued.credential
            backend_credential_id = issued.id
        except issuance_backend.IssuanceBackendError as e:
            _logger.warning(f"Issuer node did not issue {claim_id=}, signing locally. {e}")
            credential = self._builder.locally_signed_credential(claim_id, subject, revocation_nonce, now)

        offer = self._messages.offer(
            claim_id=claim_id,
            description=self._config.credential_type,
            issuer_did=self._config.issuer_did,
            holder_did=request.holder_did,
            fetch_url=self._config.fetch_url(claim_id),
        )
        claim = Claim(
            id=claim_id,
            reference_id=reference_id,
            holder_did=request.holder_did,
            credential_subject=subject,
            credential=credential,
            offer=offer.to_json_dict(),
            status=ClaimStatus.pending,
            created_at=now,
            updated_at=now,
            backend_credential_id=backend_credential_id,
            locally_signed=backend_credential_id is None,
            revocation_nonce=revocation_nonce,
        )
        self._store.create(CLAIM_COLLECTION, claim_id, _to_body(claim))
        _log("Claim created.", IssuerOperationsLogEntry.Step.issuance_preparation, claim_id, fallback=claim.locally_signed)
        return self._offer_response(claim)

    def _offer_response(self, claim: Claim) -> CreateClaimResponse:
        links = self._messages.links(claim.offer)
        return CreateClaimResponse(
            claim_id=claim.id,
            reference_id=claim.reference_id,
            status=claim.status,
            qr_code_data=links.qr_code_data,
            deep_link=links.deep_link,
            universal_link=links.universal_link,
            locally_signed=claim.locally_signed,
        )

    ###########
    # Updates #
    ###########

    def _load(self, claim_id: str) -> StoredDocument:
        stored = self._store.get(CLAIM_COLLECTION, claim_id)
        if stored is None:
            raise ClaimNotFoundError(f"{claim_id=}")
        return stored

    def _update(self, claim_id: str, change: Callable[[Claim], Claim | None]) -> Claim:
        """
        Applies `change` to a fresh read of the claim and writes the result.
        `change` returns None if there is nothing to write. Exceptions of `change` abort the update.
        """
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            stored = self._load(claim_id)
            claim = Claim.model_validate(stored.body)
            changed = change(claim)
            if changed is None:
                return claim
            if self._store.replace(CLAIM_COLLECTION, claim_id, _to_body(changed), stored.version) is not None:
                return changed
            _logger.info(f"Concurrent write on {claim_id=}, {attempt=}")
        raise ConcurrentModificationError(f"{claim_id=}")

    def _transition(self, claim: Claim, target: ClaimStatus, **updates) -> Claim:
        if not claim.status.can_transition_to(target):
            raise IllegalClaimTransitionError(claim.status.value, target.value)
        return claim.model_copy(update={"status": target, "updated_at": self._clock(), **updates})

    def process_fetch(self, claim_id: str, inbound: dict | None) -> dict:
        """
        Answers the fetch request of the wallet with the issuance message.

        The first fetch moves the claim to `issued`. Further fetches return the very same
        issuance message without changing the claim. Revoked claims raise `ClaimRevokedError`.
        """

        def deliver(claim: Claim) -> Claim | None:
            if claim.status == ClaimStatus.revoked:
                raise ClaimRevokedError(f"{claim_id=}")
            fetch = self._messages.fetch_request(claim_id, inbound, claim.holder_did, self._config.issuer_did)
            if claim.status == ClaimStatus.issued and claim.issuance:
                _logger.info(f"Repeated fetch of {claim_id=}")
                return None
            if fetch.from_ != claim.holder_did:
                _logger.warning(f"Claim {claim_id=} fetched by a different holder than it was offered to")
            issuance = self._messages.issuance(claim_id, claim.credential, self._config.issuer_did, claim.holder_did)
            now = self._clock()
            return self._transition(claim, ClaimStatus.issued, issued_at=now, issued_to=fetch.from_, issuance=issuance.to_json_dict())

        try:
            claim = self._update(claim_id, deliver)
        except ClaimRevokedError as e:
            _log("Fetch of revoked claim.", IssuerOperationsLogEntry.Step.issuance_delivery, claim_id, IssuerOperationsLogEntry.Status.error, error_code=e.error)
            raise
        _log("Credential delivered.", IssuerOperationsLogEntry.Step.issuance_delivery, claim_id)
        return claim.issuance

    def revoke(self, claim_id: str, reason: str | None = None) -> Claim | None:
        """
        Revokes the claim. None if the claim does not exist.
        Revoking an already revoked claim succeeds and keeps the first revocation time and reason.
        """

        def revoke_claim(claim: Claim) -> Claim | None:
            if claim.status == ClaimStatus.revoked:
                _logger.info(f"Claim {claim_id=} already revoked")
                return None
            return self._transition(claim, ClaimStatus.revoked, revoked_at=self._clock(), revocation_reason=reason)

        try:
            claim = self._update(claim_id, revoke_claim)
        except ClaimNotFoundError:
            return None
        _log("Claim revoked.", IssuerOperationsLogEntry.Step.issuance_revocation, claim_id)
        return claim

    #########
    # Reads #
    #########

    def get(self, claim_id: str) -> Claim:
        return Claim.model_validate(self._load(claim_id).body)

    def find(self, status: ClaimStatus | None = None, limit: int = 50, offset: int = 0) -> ClaimList:
        where = {"status": status.value} if status else None
        # One more than requested tells whether another page exists
        documents = self._store.find(CLAIM_COLLECTION, where, limit=limit + 1, offset=offset)
        return ClaimList(
            claims=[ClaimSummary.from_claim(Claim.model_validate(d.body)) for d in documents[:limit]],
            limit=limit,
            offset=offset,
            has_more=len(documents) > limit,
        )

    def for_holder(self, holder_did: str) -> list[ClaimSummary]:
        return [ClaimSummary.from_claim(Claim.model_validate(d.body)) for d in self._store.find(CLAIM_COLLECTION, {"holder_did": holder_did})]

    def find_by_revocation_nonce(self, revocation_nonce: int) -> Claim | None:
        documents = self._store.find(CLAIM_COLLECTION, {"revocation_nonce": revocation_nonce}, limit=1)
        return Claim.model_validate(documents[0].body) if documents else None

    def revocation_status(self, claim_id: str) -> RevocationStatus:
        claim = self.get(claim_id)
        return RevocationStatus(
            claim_id=claim.id,
            is_revoked=claim.status == ClaimStatus.revoked,
            revoked_at=claim.revoked_at,
            reason=claim.revocation_reason,
        )

    def offer_links(self, claim_id: str) -> CreateClaimResponse:
        """QR code and links of the stored offer, e.g. to show them again to the holder."""
        claim = self.get(claim_id)
        if claim.status == ClaimStatus.revoked:
            raise ClaimRevokedError(f"{claim_id=}")
        return self._offer_response(claim)

    def stats(self) -> ClaimStats:
        claims = [Claim.model_validate(d.body) for d in self._store.find(CLAIM_COLLECTION)]
        by_status = collections.Counter(claim.status for claim in claims)
        midnight = unix_seconds(start_of_day(self._clock()))
        return ClaimStats(
            total=len(claims),
            pending=by_status[ClaimStatus.pending],
            issued=by_status[ClaimStatus.issued],
            revoked=by_status[ClaimStatus.revoked],
            issued_today=sum(1 for claim in claims if claim.status == ClaimStatus.issued and unix_seconds(claim.issued_at) >= midnight),
            skill_breakdown=dict(collections.Counter(claim.credential_subject.skillSet for claim in claims)),
        )


def get_claim_ledger(
    store: document_store.inject,
    config: conf.inject,
    backend: issuance_backend.inject,
    key_conf: key.inject,
) -> ClaimLedger:
    return ClaimLedger(
        store=store,
        config=config,
        backend=backend,
        builder=CredentialBuilder(config, key_conf),
        messages=MessageBuilder(config.wallet_universal_link_url),
    )


inject = Annotated[ClaimLedger, Depends(get_claim_ledger)]
