"""initial comment tables

Revision ID: 5c1e7a2d9b40
Revises:
Create Date: 2026-10-18 09:12:44.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e7a2d9b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

COMMENT_STATUSES = ("PENDING", "APPROVED", "SPAM", "FLAGGED", "REJECTED", "DELETED")
VOTE_TYPES = ("UP", "DOWN")


def upgrade() -> None:
    """Create the comment, vote, telemetry, settings and post tables."""
    op.create_table(
        "post",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "comment",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("post_id", sa.String(length=64), nullable=False),
        sa.Column("parent_id", sa.String(length=36), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("author_name", sa.String(length=500), nullable=True),
        sa.Column("author_email", sa.String(length=254), nullable=True),
        sa.Column("author_website", sa.String(length=2000), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*COMMENT_STATUSES, name="commentstatus", native_enum=False, length=16),
            nullable=False,
        ),
        sa.Column("spam_score", sa.Integer(), nullable=False),
        sa.Column("spam_signals", sa.JSON(), nullable=False),
        sa.Column("flag_count", sa.Integer(), nullable=False),
        sa.Column("flag_reasons", sa.JSON(), nullable=False),
        sa.Column("upvotes", sa.Integer(), nullable=False),
        sa.Column("downvotes", sa.Integer(), nullable=False),
        sa.Column("is_pinned", sa.Boolean(), nullable=False),
        sa.Column("is_resolved", sa.Boolean(), nullable=False),
        sa.Column("is_edited", sa.Boolean(), nullable=False),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "spam_score >= 0 AND spam_score <= 100", name="ck_comment_spam_score"
        ),
        sa.ForeignKeyConstraint(["parent_id"], ["comment.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_comment_post_id", "comment", ["post_id"])
    op.create_index("ix_comment_parent_id", "comment", ["parent_id"])
    op.create_index("ix_comment_ip_address", "comment", ["ip_address"])
    op.create_index("ix_comment_post_status", "comment", ["post_id", "status"])
    op.create_index("ix_comment_user_created", "comment", ["user_id", "created_at"])

    op.create_table(
        "comment_vote",
        sa.Column("comment_id", sa.String(length=36), nullable=False),
        sa.Column("voter_id", sa.String(length=64), nullable=False),
        sa.Column(
            "vote_type",
            sa.Enum(*VOTE_TYPES, name="votetype", native_enum=False, length=8),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["comment_id"], ["comment.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("comment_id", "voter_id"),
    )
    op.create_index("ix_comment_vote_comment_id", "comment_vote", ["comment_id"])

    op.create_table(
        "learning_signal",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("comment_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["comment_id"], ["comment.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_learning_signal_comment_id", "learning_signal", ["comment_id"])

    op.create_table(
        "comment_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("max_content_length", sa.Integer(), nullable=False),
        sa.Column("max_author_name_length", sa.Integer(), nullable=False),
        sa.Column("max_website_length", sa.Integer(), nullable=False),
        sa.Column("max_reply_depth", sa.Integer(), nullable=False),
        sa.Column("comments_enabled", sa.Boolean(), nullable=False),
        sa.Column("require_moderation", sa.Boolean(), nullable=False),
        sa.Column("allow_guest_comments", sa.Boolean(), nullable=False),
        sa.Column("auto_approve_threshold", sa.Integer(), nullable=False),
        sa.Column("edit_window_minutes", sa.Integer(), nullable=False),
        sa.Column("close_comments_after_days", sa.Integer(), nullable=False),
        sa.Column("max_comments_per_post_per_user", sa.Integer(), nullable=False),
        sa.Column("max_comments_per_hour", sa.Integer(), nullable=False),
        sa.Column("max_links_before_spam", sa.Integer(), nullable=False),
        sa.Column("caps_spam_ratio", sa.Float(), nullable=False),
        sa.Column("caps_check_min_length", sa.Integer(), nullable=False),
        sa.Column("spam_score_threshold", sa.Integer(), nullable=False),
        sa.Column("custom_spam_keywords", sa.JSON(), nullable=False),
        sa.Column("blocked_emails", sa.JSON(), nullable=False),
        sa.Column("blocked_domains", sa.JSON(), nullable=False),
        sa.Column("blocked_ips", sa.JSON(), nullable=False),
        sa.Column("enable_voting", sa.Boolean(), nullable=False),
        sa.Column("enable_reactions", sa.Boolean(), nullable=False),
        sa.Column("enable_threading", sa.Boolean(), nullable=False),
        sa.Column("enable_profanity_filter", sa.Boolean(), nullable=False),
        sa.Column("enable_learning_signals", sa.Boolean(), nullable=False),
        sa.Column("track_metadata", sa.Boolean(), nullable=False),
        sa.Column("profanity_words", sa.JSON(), nullable=False),
        sa.Column("auto_flag_threshold", sa.Integer(), nullable=False),
        sa.Column("pinned_comment_limit", sa.Integer(), nullable=False),
        sa.Column("spam_retention_days", sa.Integer(), nullable=False),
        sa.Column("deleted_retention_days", sa.Integer(), nullable=False),
        sa.Column("notify_on_flag", sa.Boolean(), nullable=False),
        sa.Column("notify_on_spam", sa.Boolean(), nullable=False),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Drop every comment table."""
    op.drop_table("comment_settings")
    op.drop_index("ix_learning_signal_comment_id", table_name="learning_signal")
    op.drop_table("learning_signal")
    op.drop_index("ix_comment_vote_comment_id", table_name="comment_vote")
    op.drop_table("comment_vote")
    op.drop_index("ix_comment_user_created", table_name="comment")
    op.drop_index("ix_comment_post_status", table_name="comment")
    op.drop_index("ix_comment_ip_address", table_name="comment")
    op.drop_index("ix_comment_parent_id", table_name="comment")
    op.drop_index("ix_comment_post_id", table_name="comment")
    op.drop_table("comment")
    op.drop_table("post")
