# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum

from common.logging import operations


class IssuerOperationsLogEntry(operations.OperationsLogEntry):
    """Container for issuer operations specific logging."""

    class Operation(Enum):
        issuance = "ISSUANCE"

    class Step(Enum):
        issuance_preparation = "PREPARATION"
        issuance_delivery = "DELIVERY"
        issuance_revocation = "REVOCATION"

    operation: Operation
    step: Step

    fallback: bool | None = None
    """Set when the locally signed credential was used because the issuer node failed."""
    error_code: str | None = None
