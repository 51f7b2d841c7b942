from alembic import op
import sqlalchemy as sa

revision = "0002_code_counters"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "code_counters",
        sa.Column("name", sa.String(length=40), primary_key=True),
        sa.Column("value", sa.BigInteger(), nullable=False),
    )
    # continue after the highest code handed out so far
    op.execute(
        "INSERT INTO code_counters (name, value) "
        "SELECT 'listing', COALESCE(MAX(code), 0) FROM listings"
    )


def downgrade():
    op.drop_table("code_counters")
