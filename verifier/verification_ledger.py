# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Verification sessions: opening, resolution by the wallet's proof and expiry.

Sessions are documents of the `verification` collection and change status exactly once,
from `pending` to a terminal status. A pending session past its expiry is expired by
whoever reads it first: a status poll, a late proof or the periodic sweep.

The cryptographic check of the proof itself is not done here. A structurally complete
proof counts as valid, the issuer registry then decides whether it is trusted.
"""

import collections
import datetime
import logging
import uuid
from typing import Annotated, Callable

from fastapi import Depends

from common.clock import Clock, utcnow
from common.db import document_store
from common.db.document_store import DocumentStore, StoredDocument
from common.exception import ConcurrentModificationError, FieldError, ValidationFailedError
from common.iden3comm import MessageBuilder
from common.model.iden3comm import MessageType
from common import registry_client
from common.registry_client import IssuerRegistry, RegistryUnavailableError, extract_address

import verifier.config as conf
from verifier.exception import VerificationAlreadyResolvedError, VerificationExpiredError, VerificationNotFoundError
from verifier.logging import VerifierOperationsLogEntry
from verifier.models import (
    ChallengeRequest,
    SessionKind,
    VerificationConditions,
    VerificationRequest,
    VerificationResult,
    VerificationSession,
    VerificationStats,
    VerificationStatus,
    VerificationStatusResponse,
    VerificationType,
    OpenVerificationResponse,
)
from verifier.scope_builder import build_scopes

_logger = logging.getLogger(__name__)

VERIFICATION_COLLECTION = "verification"
MAX_WRITE_ATTEMPTS = 3
SESSIONS_PER_VERIFIER = 50
CHALLENGE_REASON = "Authorization challenge"

REQUIRED_CONDITIONS: dict[VerificationType, str] = {
    VerificationType.degree: "degree_type",
    VerificationType.age: "min_age",
    VerificationType.cibil: "min_score",
    VerificationType.custom: "custom_query",
}
"""Condition each verification type can not do without."""

_PROOF_FIELDS = ["from", "to", "type", "body"]
_AUTHORIZATION_RESPONSE_TYPES = [MessageType.authorization_response.value, "application/iden3-zkp-json"]


def new_request_id(prefix: str, clock: Clock = utcnow) -> str:
    return f"{prefix}-{int(clock().timestamp() * 1000)}-{uuid.uuid4().hex[:8]}"


def validate_verification_request(request: VerificationRequest) -> list[FieldError]:
    conditions = request.conditions
    errors = []
    required = REQUIRED_CONDITIONS.get(request.verification_type)
    required_value = getattr(conditions, required) if required else None
    # Zero is a valid bound, an empty degree or query is not
    if required and (required_value is None or required_value == "" or required_value == {}):
        errors.append(FieldError(field=f"conditions.{required}", message=f"{required} is required for {request.verification_type.value} verification"))
    for name in ["min_age", "max_age", "min_score", "max_score"]:
        value = getattr(conditions, name)
        if value is not None and value < 0:
            errors.append(FieldError(field=f"conditions.{name}", message=f"{name} must not be negative"))
    if conditions.min_age is not None and conditions.max_age is not None and conditions.min_age > conditions.max_age:
        errors.append(FieldError(field="conditions.max_age", message="max_age must not be lower than min_age"))
    if conditions.min_score is not None and conditions.max_score is not None and conditions.min_score > conditions.max_score:
        errors.append(FieldError(field="conditions.max_score", message="max_score must not be lower than min_score"))
    return errors


def proof_structure_error(proof: dict) -> str | None:
    """Why the proof message is unusable, None if it is complete."""
    missing = [field for field in _PROOF_FIELDS if not proof.get(field)]
    if missing:
        return f"Invalid proof structure, missing {', '.join(missing)}"
    if not isinstance(proof["body"], dict):
        return "Invalid proof structure, body is not an object"
    if not any(t in str(proof["type"]) or proof.get("typ") == t for t in _AUTHORIZATION_RESPONSE_TYPES):
        _logger.warning(f"Non standard proof message type {proof['type']}")
    return None


def extract_issuer(proof: dict) -> str | None:
    body = proof.get("body") if isinstance(proof.get("body"), dict) else {}
    if isinstance(body.get("issuer"), str):
        return body["issuer"]
    scopes = body.get("scope")
    if isinstance(scopes, list) and scopes and isinstance(scopes[0], dict) and isinstance(scopes[0].get("issuer"), str):
        return scopes[0]["issuer"]
    return None


def _proof_scopes(proof: dict) -> list[dict]:
    body = proof.get("body") if isinstance(proof.get("body"), dict) else {}
    scopes = body.get("scope")
    return [scope for scope in scopes if isinstance(scope, dict)] if isinstance(scopes, list) else []


def disclosed_fields(proof: dict, session: VerificationSession) -> list[str]:
    """
    Credential subject fields the proof covers. Taken from the queries echoed in the proof,
    or from the requested scopes if the wallet does not echo them.
    """
    queries = [scope["query"].get("credentialSubject") for scope in _proof_scopes(proof) if isinstance(scope.get("query"), dict)]
    if not any(isinstance(query, dict) for query in queries):
        queries = [scope.query.credentialSubject for scope in session.scopes]
    fields = []
    for query in queries:
        if isinstance(query, dict):
            fields.extend(field for field in query if field not in fields)
    return fields


def proof_type(proof: dict, session: VerificationSession) -> str:
    for scope in _proof_scopes(proof):
        if isinstance(scope.get("circuitId"), str):
            return scope["circuitId"]
    return session.scopes[0].circuitId.value


def is_issuer_authorized(registry: IssuerRegistry, issuer_did: str | None) -> bool:
    """
    Registry check of the issuer. Issuers without an on-chain address are not checked.
    An unreachable registry counts as not authorized.
    """
    address = extract_address(issuer_did)
    if address is None:
        return True
    try:
        return registry.is_authorized(address)
    except RegistryUnavailableError:
        _logger.warning(f"Registry unavailable, treating issuer {address} as not authorized", exc_info=True)
        return False


def _log(message: str, step: VerifierOperationsLogEntry.Step, request_id: str, status=VerifierOperationsLogEntry.Status.success, error_code: str | None = None) -> None:
    _logger.info(
        VerifierOperationsLogEntry(
            message=message,
            status=status,
            operation=VerifierOperationsLogEntry.Operation.verification,
            step=step,
            management_id=request_id,
            error_code=error_code,
        )
    )


def _to_body(session: VerificationSession) -> dict:
    return session.model_dump(mode="json")


class VerificationLedger:
    def __init__(
        self,
        store: DocumentStore,
        config: conf.VerifierConfig,
        registry: IssuerRegistry,
        messages: MessageBuilder,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._config = config
        self._registry = registry
        self._messages = messages
        self._clock = clock

    ###########
    # Opening #
    ###########

    def open(self, request: VerificationRequest) -> OpenVerificationResponse:
        """Creates a pending session and the authorization request the wallet has to answer."""
        errors = validate_verification_request(request)
        if errors:
            raise ValidationFailedError(errors)
        return self._open(
            kind=SessionKind.verification,
            verification_type=request.verification_type,
            conditions=request.conditions,
            reason=request.reason or f"Verification: {request.verification_type.value}",
            verifier_id=request.verifier_id,
        )

    def open_challenge(self, request: ChallengeRequest) -> OpenVerificationResponse:
        """Session asking only for the existence of a credential, e.g. to prove an operator's identity."""
        return self._open(
            kind=SessionKind.challenge,
            verification_type=None,
            conditions=VerificationConditions(),
            reason=request.reason or CHALLENGE_REASON,
            verifier_id=request.verifier_id,
        )

    def _open(
        self,
        kind: SessionKind,
        verification_type: VerificationType | None,
        conditions: VerificationConditions,
        reason: str,
        verifier_id: str | None,
    ) -> OpenVerificationResponse:
        now = self._clock()
        request_id = new_request_id("challenge" if kind == SessionKind.challenge else "verify", self._clock)
        scopes = build_scopes(verification_type, conditions, self._config.credential_type, self._config.credential_context_url, now)
        authorization_request = self._messages.authorization_request(
            request_id=request_id,
            scopes=scopes,
            reason=reason,
            callback_url=f"{self._config.callback_url}?request_id={request_id}",
            verifier_did=self._config.verifier_did,
        )
        session = VerificationSession(
            id=request_id,
            kind=kind,
            verifier_id=verifier_id,
            verification_type=verification_type,
            conditions=conditions,
            scopes=scopes,
            authorization_request=authorization_request.to_json_dict(),
            created_at=now,
            expires_at=now + datetime.timedelta(seconds=self._config.verification_window),
            updated_at=now,
        )
        self._store.create(VERIFICATION_COLLECTION, request_id, _to_body(session))
        _log("Requesting verification.", VerifierOperationsLogEntry.Step.verification_request, request_id)

        links = self._messages.links(authorization_request)
        return OpenVerificationResponse(
            request_id=request_id,
            qr_code_data=links.qr_code_data,
            deep_link=links.deep_link,
            universal_link=links.universal_link,
            expires_at=session.expires_at,
        )

    ###########
    # Updates #
    ###########

    def _load(self, request_id: str) -> StoredDocument:
        stored = self._store.get(VERIFICATION_COLLECTION, request_id)
        if stored is None:
            raise VerificationNotFoundError(f"{request_id=}")
        return stored

    def _update(self, request_id: str, change: Callable[[VerificationSession], VerificationSession | None]) -> VerificationSession:
        """
        Applies `change` to a fresh read of the session and writes the result.
        `change` returns None if there is nothing to write.
        """
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            stored = self._load(request_id)
            session = VerificationSession.model_validate(stored.body)
            changed = change(session)
            if changed is None:
                return session
            if self._store.replace(VERIFICATION_COLLECTION, request_id, _to_body(changed), stored.version) is not None:
                return changed
            _logger.info(f"Concurrent write on {request_id=}, {attempt=}")
        raise ConcurrentModificationError(f"{request_id=}")

    def _evaluate(self, proof: dict, session: VerificationSession, now: datetime.datetime) -> VerificationResult:
        holder_did = proof.get("from") if isinstance(proof.get("from"), str) else None
        issuer_did = extract_issuer(proof)
        structure_error = proof_structure_error(proof)
        if structure_error:
            return VerificationResult(
                verified=False,
                holder_did=holder_did,
                issuer_did=issuer_did,
                issuer_authorized=False,
                proof_type=proof_type(proof, session),
                verified_at=now,
                error=structure_error,
            )
        issuer_authorized = is_issuer_authorized(self._registry, issuer_did)
        return VerificationResult(
            verified=issuer_authorized,
            holder_did=holder_did,
            issuer_did=issuer_did or "unknown",
            issuer_authorized=issuer_authorized,
            proof_type=proof_type(proof, session),
            disclosed_fields=disclosed_fields(proof, session),
            verified_at=now,
            error=None if issuer_authorized else "Issuer is not authorized in the issuer registry",
        )

    def resolve(self, request_id: str, proof: dict) -> VerificationResult:
        """
        Decides the session with the proof of the wallet.

        Raises `VerificationAlreadyResolvedError` if another proof decided it before and
        `VerificationExpiredError` if the proof arrived after the verification window.
        A proof of an issuer the registry does not authorize never verifies.
        """
        evaluated: list[VerificationResult] = []

        def decide(session: VerificationSession) -> VerificationSession | None:
            now = self._clock()
            if session.status == VerificationStatus.expired:
                raise VerificationExpiredError(f"{request_id=}")
            if session.status.is_terminal:
                raise VerificationAlreadyResolvedError(f"{request_id=} is {session.status.value}")
            if session.is_overdue(now):
                return session.model_copy(update={"status": VerificationStatus.expired, "updated_at": now})
            if not evaluated:
                evaluated.append(self._evaluate(proof, session, now))
            result = evaluated[0]
            status = VerificationStatus.verified if result.verified else VerificationStatus.failed
            return session.model_copy(update={"status": status, "result": result, "updated_at": now})

        try:
            session = self._update(request_id, decide)
        except (VerificationExpiredError, VerificationAlreadyResolvedError, VerificationNotFoundError) as e:
            _log("Proof rejected.", VerifierOperationsLogEntry.Step.verification_evaluation, request_id, VerifierOperationsLogEntry.Status.error, e.error)
            raise
        if session.status == VerificationStatus.expired:
            _log("Verification expired.", VerifierOperationsLogEntry.Step.verification_expiry, request_id)
            raise VerificationExpiredError(f"{request_id=}")

        if session.result.verified:
            _log("Verification successful.", VerifierOperationsLogEntry.Step.verification_evaluation, request_id)
        else:
            _log("Verification failed.", VerifierOperationsLogEntry.Step.verification_evaluation, request_id, VerifierOperationsLogEntry.Status.error, "verification_failed")
        return session.result

    def _expire_if_overdue(self, request_id: str) -> VerificationSession:
        expired = []

        def expire(session: VerificationSession) -> VerificationSession | None:
            now = self._clock()
            if not session.is_overdue(now):
                return None
            expired.append(request_id)
            return session.model_copy(update={"status": VerificationStatus.expired, "updated_at": now})

        session = self._update(request_id, expire)
        if expired and session.status == VerificationStatus.expired:
            _log("Verification expired.", VerifierOperationsLogEntry.Step.verification_expiry, request_id)
        return session

    #########
    # Reads #
    #########

    def status(self, request_id: str) -> VerificationSession:
        """The session, expired first if it is pending past its expiry."""
        session = self._expire_if_overdue(request_id)
        _log("Verification status requested.", VerifierOperationsLogEntry.Step.verification_response, request_id)
        return session

    def sessions_for_verifier(self, verifier_id: str) -> list[VerificationStatusResponse]:
        """Newest sessions of the verifier."""
        documents = self._store.find(VERIFICATION_COLLECTION, {"verifier_id": verifier_id}, limit=SESSIONS_PER_VERIFIER)
        now = self._clock()
        sessions = []
        for document in documents:
            session = VerificationSession.model_validate(document.body)
            if session.is_overdue(now):
                session = self._expire_if_overdue(session.id)
            sessions.append(VerificationStatusResponse.from_session(session))
        return sessions

    def stats(self) -> VerificationStats:
        """Counts per status. Pending sessions past their expiry count as expired."""
        now = self._clock()
        sessions = [VerificationSession.model_validate(d.body) for d in self._store.find(VERIFICATION_COLLECTION)]
        by_status = collections.Counter(VerificationStatus.expired if s.is_overdue(now) else s.status for s in sessions)
        return VerificationStats(
            total=len(sessions),
            pending=by_status[VerificationStatus.pending],
            verified=by_status[VerificationStatus.verified],
            failed=by_status[VerificationStatus.failed],
            expired=by_status[VerificationStatus.expired],
        )

    def expire_stale(self) -> int:
        """Expires every pending session past its expiry. Returns how many were expired."""
        now = self._clock()
        pending = self._store.find(VERIFICATION_COLLECTION, {"status": VerificationStatus.pending.value})
        count = 0
        for document in pending:
            if not VerificationSession.model_validate(document.body).is_overdue(now):
                continue
            try:
                if self._expire_if_overdue(document.id).status == VerificationStatus.expired:
                    count += 1
            except ConcurrentModificationError:
                _logger.warning(f"Could not expire {document.id}, retrying on next sweep")
        return count


def build_verification_ledger(store: DocumentStore, config: conf.VerifierConfig, registry: IssuerRegistry) -> VerificationLedger:
    return VerificationLedger(store, config, registry, MessageBuilder(config.wallet_universal_link_url))


def get_verification_ledger(store: document_store.inject, config: conf.inject, registry: registry_client.inject) -> VerificationLedger:
    return build_verification_ledger(store, config, registry)


inject = Annotated[VerificationLedger, Depends(get_verification_ledger)]
