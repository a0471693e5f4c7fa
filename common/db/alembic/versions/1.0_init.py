# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""init

Revision ID: 1.0
Revises:
Create Date: 2024-05-06 09:30:12.118204

Document table holding claims and verification sessions.
Will check if the table already exists before attempting to forcefully create it.

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '1.0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    if "document" in inspector.get_table_names():
        return
    op.create_table(
        "document",
        sa.Column("collection", sa.String(64), primary_key=True),
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("body", sa.JSON, nullable=False),
    )
    op.create_index("ix_document_created_at", "document", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_document_created_at", table_name="document")
    op.drop_table("document")
