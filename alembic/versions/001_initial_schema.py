"""Initial schema: users, tasks, assignees, tags, comments and documents.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.Enum('user', 'admin', name='userrole'), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    # Create tasks table
    op.create_table(
        'tasks',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('status', sa.Enum('pending', 'in-progress', 'completed', name='taskstatus'), nullable=False, server_default='pending'),
        sa.Column('priority', sa.Enum('low', 'medium', 'high', name='taskpriority'), nullable=False, server_default='medium'),
        sa.Column('category', sa.String(50), nullable=False, server_default=''),
        sa.Column('due_date', sa.DateTime, nullable=False),
        sa.Column('estimated_hours', sa.Float),
        sa.Column('actual_hours', sa.Float),
        sa.Column('created_by', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime),
        sa.CheckConstraint('estimated_hours IS NULL OR estimated_hours >= 0', name='non_negative_estimated_hours'),
        sa.CheckConstraint('actual_hours IS NULL OR actual_hours >= 0', name='non_negative_actual_hours'),
    )
    op.create_index('ix_tasks_status', 'tasks', ['status'])
    op.create_index('ix_tasks_priority', 'tasks', ['priority'])
    op.create_index('ix_tasks_category', 'tasks', ['category'])
    op.create_index('ix_tasks_due_date', 'tasks', ['due_date'])
    op.create_index('ix_tasks_created_by', 'tasks', ['created_by'])
    op.create_index('ix_tasks_created_at', 'tasks', ['created_at'])

    # Create task_assignees association table
    op.create_table(
        'task_assignees',
        sa.Column('task_id', sa.Uuid, sa.ForeignKey('tasks.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('assigned_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_task_assignees_user_id', 'task_assignees', ['user_id'])

    # Create task_tags table (one row per tag, in input order)
    op.create_table(
        'task_tags',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('task_id', sa.Uuid, sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False),
        sa.Column('name', sa.String(30), nullable=False),
    )
    op.create_index('ix_task_tags_task_id', 'task_tags', ['task_id'])
    op.create_index('ix_task_tags_name', 'task_tags', ['name'])

    # Create task_comments table
    op.create_table(
        'task_comments',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('task_id', sa.Uuid, sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('text', sa.String(500), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_task_comments_task_id', 'task_comments', ['task_id'])

    # Create task_documents table
    op.create_table(
        'task_documents',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('task_id', sa.Uuid, sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('path', sa.String(1024), nullable=False),
        sa.Column('mimetype', sa.String(100), nullable=False),
        sa.Column('size', sa.Integer, nullable=False),
        sa.Column('uploaded_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_task_documents_task_id', 'task_documents', ['task_id'])


def downgrade() -> None:
    # Drop tables
    op.drop_table('task_documents')
    op.drop_table('task_comments')
    op.drop_table('task_tags')
    op.drop_table('task_assignees')
    op.drop_table('tasks')
    op.drop_table('users')

    # Drop enums (no-op on backends without named enum types)
    sa.Enum(name='taskpriority').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='taskstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='userrole').drop(op.get_bind(), checkfirst=True)
