"""
Initial schema: users + movies.

- users: case-insensitive unique email (functional index on lower(email)).
- movies: case-insensitive unique title, created_at index for newest-first paging.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic.
revision = "20261019_01_users_and_movies"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.CheckConstraint("length(btrim(email)) > 0", name="ck_users_email_not_blank"),
    )
    op.create_index("uq_users_email_lower", "users", [sa.text("lower(email)")], unique=True)

    # --- movies ---
    op.create_table(
        "movies",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("publishing_year", sa.Integer(), nullable=False),
        sa.Column("poster", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_movies"),
        sa.CheckConstraint("length(btrim(title)) > 0", name="ck_movies_title_not_blank"),
        sa.CheckConstraint("publishing_year >= 1888", name="ck_movies_publishing_year_min"),
    )
    op.create_index("uq_movies_title_lower", "movies", [sa.text("lower(title)")], unique=True)
    op.create_index("ix_movies_created_at", "movies", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_movies_created_at", table_name="movies")
    op.drop_index("uq_movies_title_lower", table_name="movies")
    op.drop_table("movies")
    op.drop_index("uq_users_email_lower", table_name="users")
    op.drop_table("users")
