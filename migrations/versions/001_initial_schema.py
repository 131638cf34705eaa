"""Initial marketplace schema: profiles, ride requests, bids, chat, ratings, fare policy.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("avatar_url", sa.String(1024), nullable=False),
        sa.Column(
            "role",
            sa.Enum("PASSENGER", "DRIVER", "ADMIN", name="user_role"),
            nullable=False,
        ),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("car_details", sa.JSON, nullable=True),
        sa.Column("license_url", sa.String(1024), nullable=True),
        sa.Column("rating_average", sa.Float, nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_available", sa.Boolean, nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_users_role", "users", ["role"])
    op.create_index("idx_users_name", "users", ["name"])

    # ── ride_requests ─────────────────────────────────────────────────
    op.create_table(
        "ride_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "passenger_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("passenger", sa.JSON, nullable=False),
        sa.Column("location", sa.String(512), nullable=False),
        sa.Column("destination", sa.String(512), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "ACCEPTED",
                "COMPLETED",
                "CANCELLED",
                name="request_status",
            ),
            nullable=False,
        ),
        sa.Column("accepted_bid_id", sa.Integer, nullable=True),
        sa.Column("accepted_bid", sa.JSON, nullable=True),
        sa.Column("accepted_driver_id", sa.String(128), nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_ride_requests_status", "ride_requests", ["status"])
    op.create_index(
        "idx_ride_requests_passenger", "ride_requests", ["passenger_id", "status"]
    )
    op.create_index(
        "idx_ride_requests_driver", "ride_requests", ["accepted_driver_id", "status"]
    )
    op.create_index("idx_ride_requests_created", "ride_requests", ["created_at"])

    # ── bids ──────────────────────────────────────────────────────────
    op.create_table(
        "bids",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "request_id",
            sa.Integer,
            sa.ForeignKey("ride_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("driver_id", sa.String(128), nullable=False),
        sa.Column("driver", sa.JSON, nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("driver_lat", sa.Float, nullable=True),
        sa.Column("driver_lng", sa.Float, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("amount > 0", name="ck_bids_amount_positive"),
    )
    op.create_index("idx_bids_request_amount", "bids", ["request_id", "amount"])
    op.create_index("idx_bids_driver", "bids", ["driver_id"])

    # ── messages ──────────────────────────────────────────────────────
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "request_id",
            sa.Integer,
            sa.ForeignKey("ride_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sender_id", sa.String(128), nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_messages_request", "messages", ["request_id", "created_at"])

    # ── ratings ───────────────────────────────────────────────────────
    op.create_table(
        "ratings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "ride_request_id",
            sa.Integer,
            sa.ForeignKey("ride_requests.id"),
            unique=True,
            nullable=False,
        ),
        sa.Column("passenger_id", sa.String(128), nullable=False),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("review", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_ratings_range"),
    )
    op.create_index("idx_ratings_driver", "ratings", ["driver_id"])

    # ── fare_config ───────────────────────────────────────────────────
    op.create_table(
        "fare_config",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("base_fare", sa.Float, nullable=False),
        sa.Column("rate_per_km", sa.Float, nullable=False),
        sa.Column("rate_per_minute", sa.Float, nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("fare_config")
    op.drop_table("ratings")
    op.drop_table("messages")
    op.drop_table("bids")
    op.drop_table("ride_requests")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS request_status")
    op.execute("DROP TYPE IF EXISTS user_role")
