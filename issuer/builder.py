# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Builds the credential subject and the locally signed credential.

W3C Verifiable Credential
https://www.w3.org/TR/vc-data-model/

iden3 credential status (sparse merkle tree revocation)
https://docs.iden3.io/protocol/spec/
"""

import datetime

from common.clock import shift_years, unix_seconds
from common.key_configuration import KeyConfiguration

import issuer.config as conf
from issuer.models import CreateClaimRequest, CredentialSubject
from issuer.validation import parse_date_of_birth, SCORE_NOT_APPLICABLE

W3C_CREDENTIALS_CONTEXT = "https://www.w3.org/2018/credentials/v1"
IDEN3_PROOFS_CONTEXT = "https://schema.iden3.io/core/jsonld/iden3proofs.jsonld"
SCHEMA_TYPE = "JsonSchema2023"
REVOCATION_TYPE = "SparseMerkleTreeProof"
PROOF_TYPE = "JsonWebSignature2020"


def date_of_birth_timestamp(date_of_birth: str) -> int:
    """Unix timestamp of midnight UTC of the (already validated) birthday."""
    parsed = parse_date_of_birth(date_of_birth)
    return unix_seconds(datetime.datetime.combine(parsed, datetime.time.min, tzinfo=datetime.timezone.utc))


class CredentialBuilder:
    def __init__(self, config: conf.IssuerConfig, key_conf: KeyConfiguration):
        """
        config: issuer configuration providing issuer did, schema and revocation urls
        key_conf: key signing credentials when the issuer node is unavailable
        """
        self.config = config
        self.key_conf = key_conf

    def subject(self, request: CreateClaimRequest, reference_id: str, national_id_hash: str) -> CredentialSubject:
        """
        Credential subject of a validated request.
        The raw national id is not part of it, only `national_id_hash`.
        """
        return CredentialSubject(
            id=request.holder_did,
            type=self.config.credential_type,
            referenceId=reference_id,
            nationalIdHash=national_id_hash,
            fullName=request.full_name.strip(),
            dateOfBirth=date_of_birth_timestamp(request.date_of_birth),
            skillSet=request.skill_set.strip(),
            isGraduated=request.is_graduated,
            cibilScore=request.cibil_score if request.cibil_score is not None else SCORE_NOT_APPLICABLE,
            institutionName=request.institution_name,
            degreeTitle=request.degree_title,
            completionYear=request.completion_year or 0,
            grade=request.grade,
        )

    def expiration(self, issued_at: datetime.datetime) -> datetime.datetime:
        return shift_years(issued_at, self.config.credential_validity_years)

    def issuer_node_request(self, subject: CredentialSubject, issued_at: datetime.datetime) -> dict:
        """Request body to create the credential at the issuer node."""
        return {
            "credentialSchema": self.config.credential_schema_url,
            "type": self.config.credential_type,
            "credentialSubject": subject.model_dump(mode="json"),
            "expiration": unix_seconds(self.expiration(issued_at)),
            "signatureProof": True,
            "mtProof": False,
        }

    def locally_signed_credential(self, claim_id: str, subject: CredentialSubject, revocation_nonce: int, issued_at: datetime.datetime) -> dict:
        """
        Credential signed with the key of this service.
        Used when the issuer node could not issue the credential.
        """
        credential = {
            "id": f"urn:uuid:{claim_id}",
            "@context": [W3C_CREDENTIALS_CONTEXT, IDEN3_PROOFS_CONTEXT, self.config.credential_context_url],
            "type": ["VerifiableCredential", self.config.credential_type],
            "issuer": self.config.issuer_did,
            "issuanceDate": issued_at.isoformat(),
            "expirationDate": self.expiration(issued_at).isoformat(),
            "credentialSubject": subject.model_dump(mode="json"),
            "credentialSchema": {"id": self.config.credential_schema_url, "type": SCHEMA_TYPE},
            "credentialStatus": {
                "id": self.config.revocation_url(revocation_nonce),
                "type": REVOCATION_TYPE,
                "revocationNonce": revocation_nonce,
            },
        }
        credential["proof"] = [
            {
                "type": PROOF_TYPE,
                "created": issued_at.isoformat(),
                "verificationMethod": f"{self.key_conf.jwk_did}#0",
                "proofPurpose": "assertionMethod",
                "jws": self.key_conf.encode_jwt(credential),
            }
        ]
        return credential
