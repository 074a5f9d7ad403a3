"""cfp decision workflow

Revision ID: 0001_cfp_decision_workflow
Revises:
Create Date: 2026-10-17

Adds speakers, submissions, reviews, decisions (+ event log), speaker attendance
confirmations and scheduled decision emails.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import context, op


revision = "0001_cfp_decision_workflow"
down_revision = None
branch_labels = None
depends_on = None


def _is_offline() -> bool:
    try:
        return bool(context.is_offline_mode())
    except Exception:
        return False


def _insp():
    return sa.inspect(op.get_bind())


def _has_table(name: str) -> bool:
    return _insp().has_table(name)


def _get_indexes(table: str) -> set[str]:
    idx = set()
    for i in _insp().get_indexes(table):
        idx.add(str(i.get("name") or ""))
    return idx


def _create_index(name: str, table: str, cols: list[str], **kw) -> None:
    if _is_offline():
        op.create_index(name, table, cols, **kw)
        return
    if name in _get_indexes(table):
        return
    op.create_index(name, table, cols, **kw)


def upgrade() -> None:
    if _is_offline() or not _has_table("cfp_speakers"):
        op.create_table(
            "cfp_speakers",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("email", sa.String(length=256), nullable=False),
            sa.Column("first_name", sa.String(length=128), server_default="", nullable=False),
            sa.Column("last_name", sa.String(length=128), server_default="", nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
    _create_index("ix_cfp_speakers_email", "cfp_speakers", ["email"])

    if _is_offline() or not _has_table("cfp_submissions"):
        op.create_table(
            "cfp_submissions",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("speaker_id", sa.String(length=64), sa.ForeignKey("cfp_speakers.id"), nullable=False),
            sa.Column("title", sa.String(length=512), server_default="", nullable=False),
            sa.Column("submission_type", sa.String(length=16), server_default="standard", nullable=False),
            sa.Column("status", sa.String(length=32), server_default="draft", nullable=False),
            sa.Column("workshop_json", sa.Text(), server_default="{}", nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )
    _create_index("ix_cfp_submissions_speaker_id", "cfp_submissions", ["speaker_id"])
    _create_index("ix_cfp_submissions_status", "cfp_submissions", ["status"])

    if _is_offline() or not _has_table("cfp_reviews"):
        op.create_table(
            "cfp_reviews",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("submission_id", sa.String(length=64), sa.ForeignKey("cfp_submissions.id"), nullable=False),
            sa.Column("reviewer_id", sa.String(length=64), nullable=False),
            sa.Column("score_overall", sa.Float(), nullable=True),
            sa.Column("score_relevance", sa.Float(), nullable=True),
            sa.Column("score_technical_depth", sa.Float(), nullable=True),
            sa.Column("score_clarity", sa.Float(), nullable=True),
            sa.Column("score_diversity", sa.Float(), nullable=True),
            sa.Column("private_notes", sa.Text(), nullable=True),
            sa.Column("feedback_to_speaker", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.UniqueConstraint("submission_id", "reviewer_id", name="uq_cfp_reviews_submission_reviewer"),
        )
    _create_index("ix_cfp_reviews_submission_id", "cfp_reviews", ["submission_id"])
    _create_index("ix_cfp_reviews_reviewer_id", "cfp_reviews", ["reviewer_id"])

    if _is_offline() or not _has_table("cfp_decisions"):
        op.create_table(
            "cfp_decisions",
            sa.Column(
                "submission_id",
                sa.String(length=64),
                sa.ForeignKey("cfp_submissions.id"),
                primary_key=True,
            ),
            sa.Column("decision_status", sa.String(length=16), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("decided_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("decided_by", sa.String(length=128), nullable=True),
        )

    if _is_offline() or not _has_table("cfp_decision_events"):
        op.create_table(
            "cfp_decision_events",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("submission_id", sa.String(length=64), sa.ForeignKey("cfp_submissions.id"), nullable=False),
            sa.Column("event_type", sa.String(length=32), nullable=False),
            sa.Column("previous_status", sa.String(length=16), nullable=False),
            sa.Column("new_status", sa.String(length=16), nullable=False),
            sa.Column("admin_id", sa.String(length=128), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
    _create_index("ix_cfp_decision_events_submission_id", "cfp_decision_events", ["submission_id"])
    _create_index("ix_cfp_decision_events_created_at", "cfp_decision_events", ["created_at"])

    if _is_offline() or not _has_table("cfp_speaker_attendance"):
        op.create_table(
            "cfp_speaker_attendance",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("speaker_id", sa.String(length=64), sa.ForeignKey("cfp_speakers.id"), nullable=False),
            sa.Column("submission_id", sa.String(length=64), sa.ForeignKey("cfp_submissions.id"), nullable=False),
            sa.Column("status", sa.String(length=16), server_default="pending", nullable=False),
            sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("decline_reason", sa.String(length=32), nullable=True),
            sa.Column("decline_notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.UniqueConstraint(
                "speaker_id", "submission_id", name="uq_cfp_speaker_attendance_speaker_submission"
            ),
        )
    _create_index("ix_cfp_speaker_attendance_speaker_id", "cfp_speaker_attendance", ["speaker_id"])
    _create_index("ix_cfp_speaker_attendance_submission_id", "cfp_speaker_attendance", ["submission_id"])

    if _is_offline() or not _has_table("cfp_scheduled_emails"):
        op.create_table(
            "cfp_scheduled_emails",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("submission_id", sa.String(length=64), sa.ForeignKey("cfp_submissions.id"), nullable=False),
            sa.Column("email_type", sa.String(length=16), nullable=False),
            sa.Column("status", sa.String(length=16), server_default="pending", nullable=False),
            sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
            sa.Column("recipient_email", sa.String(length=256), nullable=False),
            sa.Column("recipient_name", sa.String(length=256), server_default="", nullable=False),
            sa.Column("talk_title", sa.String(length=512), server_default="", nullable=False),
            sa.Column("personal_message", sa.Text(), nullable=True),
            sa.Column("coupon_code", sa.String(length=32), nullable=True),
            sa.Column("coupon_discount_percent", sa.Integer(), nullable=True),
            sa.Column("coupon_validity_days", sa.Integer(), nullable=True),
            sa.Column("coupon_expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("include_feedback", sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column("feedback_text", sa.Text(), nullable=True),
            sa.Column("scheduled_by", sa.String(length=128), nullable=True),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("cancelled_by", sa.String(length=128), nullable=True),
            sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("failure_reason", sa.Text(), nullable=True),
            sa.Column("claim_id", sa.String(length=64), nullable=True),
            sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("provider_message_id", sa.String(length=128), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )
    _create_index("ix_cfp_scheduled_emails_submission_id", "cfp_scheduled_emails", ["submission_id"])
    _create_index("ix_cfp_scheduled_emails_status", "cfp_scheduled_emails", ["status"])
    _create_index("ix_cfp_scheduled_emails_scheduled_for", "cfp_scheduled_emails", ["scheduled_for"])
    # at most one pending email per (submission, type)
    _create_index(
        "uq_cfp_scheduled_emails_pending",
        "cfp_scheduled_emails",
        ["submission_id", "email_type"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_table("cfp_scheduled_emails")
    op.drop_table("cfp_speaker_attendance")
    op.drop_table("cfp_decision_events")
    op.drop_table("cfp_decisions")
    op.drop_table("cfp_reviews")
    op.drop_table("cfp_submissions")
    op.drop_table("cfp_speakers")
