"""initial transit incident schema

Revision ID: 0001_initial
Revises:
Create Date: 2025-01-01 00:00:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

vehicle_type = postgresql.ENUM("bus", "tram", name="vehicletype", create_type=False)
incident_type = postgresql.ENUM("vehicleBreakdown", "infrastructureBreakdown", "dangerInsideVehicle", name="incidenttype", create_type=False)
priority = postgresql.ENUM("low", "medium", "high", "critical", name="priority", create_type=False)
vote_type = postgresql.ENUM("confirm", "reject", name="votetype", create_type=False)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum in (vehicle_type, incident_type, priority, vote_type):
        enum.create(bind, checkfirst=True)

    op.create_table(
        "line",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("number", sa.String(50), nullable=False),
        sa.Column("type", vehicle_type, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_line_number", "line", ["number"])

    op.create_table(
        "stop",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("type", vehicle_type, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_stop_name", "stop", ["name"])
    op.create_index("ix_stop_lat_lon", "stop", ["latitude", "longitude"])

    op.create_table(
        "incident",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", incident_type, nullable=False),
        sa.Column("priority", priority, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("line_id", sa.String(64), sa.ForeignKey("line.id"), nullable=True),
        sa.Column("line_direction", sa.String(255), nullable=True),
        sa.Column("stop_id", sa.String(64), sa.ForeignKey("stop.id"), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("(line_id IS NULL) <> (stop_id IS NULL)", name="ck_incident_single_anchor"),
    )
    op.create_index("ix_incident_id", "incident", ["id"])
    op.create_index("ix_incident_line_id", "incident", ["line_id"])
    op.create_index("ix_incident_stop_id", "incident", ["stop_id"])
    op.create_index("ix_incident_end_time", "incident", ["end_time"])
    op.create_index("ix_incident_lat_lon", "incident", ["latitude", "longitude"])

    op.create_table(
        "vote",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("incident_id", sa.Integer(), sa.ForeignKey("incident.id", ondelete="CASCADE"), nullable=False),
        sa.Column("vote_type", vote_type, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "incident_id", name="uq_vote_user_incident"),
    )
    op.create_index("ix_vote_id", "vote", ["id"])
    op.create_index("ix_vote_incident_id", "vote", ["incident_id"])

    op.create_table(
        "linesubscription",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("line_id", sa.String(64), sa.ForeignKey("line.id", ondelete="CASCADE"), nullable=False),
        sa.Column("min_priority", priority, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_linesubscription_id", "linesubscription", ["id"])
    op.create_index("ix_linesubscription_user_id", "linesubscription", ["user_id"])
    op.create_index("ix_linesubscription_line_id", "linesubscription", ["line_id"])

    op.create_table(
        "areasubscription",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("radius_meters", sa.Integer(), nullable=False),
        sa.Column("min_priority", priority, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("radius_meters > 0", name="ck_area_subscription_radius"),
    )
    op.create_index("ix_areasubscription_id", "areasubscription", ["id"])
    op.create_index("ix_areasubscription_user_id", "areasubscription", ["user_id"])


def downgrade() -> None:
    op.drop_table("areasubscription")
    op.drop_table("linesubscription")
    op.drop_table("vote")
    op.drop_table("incident")
    op.drop_table("stop")
    op.drop_table("line")
    for enum in (vote_type, priority, incident_type, vehicle_type):
        enum.drop(op.get_bind(), checkfirst=True)
