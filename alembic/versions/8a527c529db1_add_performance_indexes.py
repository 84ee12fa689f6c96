"""Add per-user query indexes

Revision ID: 8a527c529db1
Revises: a3a38d9091b1
Create Date: 2025-10-19 19:42:33.921788

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '8a527c529db1'
down_revision: Union[str, Sequence[str], None] = 'a3a38d9091b1'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    # Composite indexes for per-user range scans, with and without a type filter
    op.create_index('idx_user_timestamp', 'events', ['user_id', 'timestamp'], if_not_exists=True)
    op.create_index(
        'idx_user_type_timestamp', 'events', ['user_id', 'event_type', 'timestamp'], if_not_exists=True
    )


def downgrade():
    op.drop_index('idx_user_type_timestamp', 'events')
    op.drop_index('idx_user_timestamp', 'events')
