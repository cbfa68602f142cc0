"""Drop legacy username index

Databases carried over from the earlier deployment and stamped at 0001
may still have a non-unique ix_users_username index next to the unique
constraint on username. Drop it if present; on databases built by 0001
this is a no-op.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEGACY_INDEX = 'ix_users_username'


def upgrade() -> None:
    indexes = sa.inspect(op.get_bind()).get_indexes('users')
    if any(index['name'] == LEGACY_INDEX for index in indexes):
        op.drop_index(LEGACY_INDEX, table_name='users')


def downgrade() -> None:
    # The legacy index is not restored
    pass
