"""error logs, alert rules and notifications

Revision ID: 0001_error_alerts
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = '0001_error_alerts'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'error_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('owner_id', sa.String(length=64), index=True, nullable=False),
        sa.Column('error_type', sa.String(length=32), index=True, nullable=False),
        sa.Column('error_code', sa.String(length=64), nullable=True),
        sa.Column('path', sa.String(length=512), nullable=False, server_default=''),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('stack_trace', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False, index=True)
    )
    op.create_index('ix_error_log_owner_type_ts', 'error_logs', ['owner_id','error_type','occurred_at'])
    op.create_table(
        'error_alert_rules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.String(length=64), index=True, nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('monitored_types', sa.JSON(), nullable=False),
        sa.Column('threshold_count', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('window_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('cooldown_minutes', sa.Integer(), nullable=True),
        sa.Column('severity', sa.String(length=16), nullable=False, server_default='error'),
        sa.Column('channels', sa.JSON(), nullable=False),
        sa.Column('recipient_email', sa.String(length=256), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        sa.Column('last_triggered_at', sa.DateTime(), nullable=True, index=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False, index=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint('threshold_count >= 1', name='ck_error_alert_rule_threshold'),
        sa.CheckConstraint('window_minutes >= 1', name='ck_error_alert_rule_window'),
    )
    op.create_index('ix_error_alert_rule_owner_enabled', 'error_alert_rules', ['owner_id','enabled'])
    op.create_table(
        'error_notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.String(length=64), index=True, nullable=False),
        sa.Column('rule_id', sa.Integer(), index=True, nullable=False),
        sa.Column('source_event_id', sa.Integer(), index=True, nullable=False),
        sa.Column('title', sa.String(length=256), nullable=False),
        sa.Column('message', sa.String(length=1024), nullable=False),
        sa.Column('severity', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False, index=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('rule_id', 'source_event_id', name='uq_error_notification_rule_event'),
    )
    op.create_index('ix_error_notification_owner_created', 'error_notifications', ['owner_id','created_at'])


def downgrade():
    op.drop_index('ix_error_notification_owner_created', table_name='error_notifications')
    op.drop_table('error_notifications')
    op.drop_index('ix_error_alert_rule_owner_enabled', table_name='error_alert_rules')
    op.drop_table('error_alert_rules')
    op.drop_index('ix_error_log_owner_type_ts', table_name='error_logs')
    op.drop_table('error_logs')
