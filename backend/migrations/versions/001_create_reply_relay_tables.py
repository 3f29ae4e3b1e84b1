"""Create reply relay tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Tables: user, profile, user_email_alias, job, application, application_message
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _updated_at_trigger(table: str) -> None:
    op.execute(f"""
        CREATE TRIGGER update_{table}_updated_at
        BEFORE UPDATE ON "{table}"
        FOR EACH ROW
        EXECUTE FUNCTION update_updated_at_column();
    """)


def upgrade():
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
          NEW.updated_at = NOW();
          RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.create_table(
        'user',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_user_email', 'user', [sa.text('lower(email)')], unique=True)

    op.create_table(
        'profile',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('first_name', sa.Text(), nullable=True),
        sa.Column('last_name', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('alias_email', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', name='uq_profile_user_id'),
    )
    op.create_index('idx_profile_alias_email', 'profile', [sa.text('lower(alias_email)')])
    op.create_index('idx_profile_email', 'profile', [sa.text('lower(email)')])
    _updated_at_trigger('profile')

    op.create_table(
        'user_email_alias',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('full_address', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_user_email_alias_user_id', 'user_email_alias', ['user_id'])
    op.create_index('idx_user_email_alias_address', 'user_email_alias', [sa.text('lower(full_address)')])

    op.create_table(
        'job',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('hospital_name', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'application',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('job_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('recipient_email', sa.Text(), nullable=True),
        sa.Column('reply_token', sa.Text(), nullable=True),
        sa.Column('reply_to', sa.Text(), nullable=True),
        sa.Column('subject', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default=sa.text("'queued'"), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['job_id'], ['job.id'], ondelete='SET NULL'),
        sa.CheckConstraint(
            "status IN ('queued', 'sent', 'replied', 'failed')",
            name='ck_application_status'
        ),
    )
    op.create_index(
        'idx_application_user_status_updated',
        'application',
        ['user_id', 'status', 'updated_at']
    )
    op.create_index('idx_application_reply_token', 'application', ['reply_token'])
    op.create_index('idx_application_reply_to', 'application', [sa.text('lower(reply_to)')])
    _updated_at_trigger('application')

    op.create_table(
        'application_message',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('application_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('direction', sa.Text(), nullable=False),
        sa.Column('subject', sa.Text(), nullable=True),
        sa.Column('sender', sa.Text(), nullable=True),
        sa.Column('recipient', sa.Text(), nullable=True),
        sa.Column('reply_to', sa.Text(), nullable=True),
        sa.Column('message_id', sa.Text(), nullable=True),
        sa.Column('provider_message_id', sa.Text(), nullable=True),
        sa.Column('text_body', sa.Text(), nullable=True),
        sa.Column('html_body', sa.Text(), nullable=True),
        sa.Column('headers', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('match_confidence', sa.Text(), nullable=True),
        sa.Column('match_signals', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['application_id'], ['application.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
        sa.CheckConstraint("direction IN ('inbound', 'outbound')", name='ck_message_direction'),
        sa.CheckConstraint(
            "match_confidence IS NULL OR match_confidence IN ('high', 'medium', 'low')",
            name='ck_message_match_confidence'
        ),
    )

    # At-least-once webhook delivery: one inbound row per user and Message-Id
    op.create_index(
        'idx_message_unique_inbound',
        'application_message',
        ['user_id', 'direction', 'message_id'],
        unique=True,
        postgresql_where=sa.text("message_id IS NOT NULL AND direction = 'inbound'")
    )
    op.create_index('idx_message_user_message_id', 'application_message', ['user_id', 'message_id'])
    op.create_index(
        'idx_message_user_provider_message_id',
        'application_message',
        ['user_id', 'provider_message_id']
    )
    op.create_index('ix_application_message_application_id', 'application_message', ['application_id'])


def downgrade():
    op.drop_table('application_message')

    op.execute('DROP TRIGGER IF EXISTS update_application_updated_at ON application')
    op.drop_table('application')
    op.drop_table('job')
    op.drop_table('user_email_alias')

    op.execute('DROP TRIGGER IF EXISTS update_profile_updated_at ON profile')
    op.drop_table('profile')
    op.drop_table('user')

    op.execute('DROP FUNCTION IF EXISTS update_updated_at_column()')
