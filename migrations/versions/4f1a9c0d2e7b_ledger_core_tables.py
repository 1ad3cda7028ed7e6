"""ledger core tables: directory, rbac, adjustment entries and default templates

Revision ID: 4f1a9c0d2e7b
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1a9c0d2e7b'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


category_enum = sa.Enum('benefit', 'deduction', name='adjustment_category_enum')
cutoff_enum = sa.Enum('1st', '2nd', name='cutoff_label_enum')


def upgrade() -> None:
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=True, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
    )
    op.create_table(
        'permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(120), nullable=False, unique=True),
        sa.Column('name', sa.String(150), nullable=True),
    )
    op.create_table(
        'user_roles',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table(
        'role_permissions',
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, unique=True),
        sa.Column('idno', sa.String(32), nullable=False, unique=True),
        sa.Column('first_name', sa.String(80), nullable=False),
        sa.Column('middle_name', sa.String(80), nullable=True),
        sa.Column('last_name', sa.String(80), nullable=False),
        sa.Column('suffix', sa.String(16), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_emp_dept_id', 'employees', ['department_id'], unique=False)
    op.create_index('ix_emp_status_name', 'employees', ['status', 'last_name', 'first_name'], unique=False)

    op.create_table(
        'adjustment_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('category', category_enum, nullable=False),
        sa.Column('cutoff', cutoff_enum, nullable=False),
        sa.Column('period_date', sa.Date(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_posted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('posted_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('posted_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('employee_id', 'category', 'cutoff', 'period_date', name='uq_adj_entry_emp_cat_period'),
    )
    op.create_index('ix_adj_entry_period', 'adjustment_entries',
                    ['category', 'cutoff', 'period_date', 'is_posted'], unique=False)

    op.create_table(
        'adjustment_entry_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('entry_id', sa.Integer(), sa.ForeignKey('adjustment_entries.id', ondelete='CASCADE'), nullable=False),
        sa.Column('field_key', sa.String(40), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.UniqueConstraint('entry_id', 'field_key', name='uq_adj_line_entry_field'),
    )

    op.create_table(
        'default_templates',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', category_enum, nullable=False),
        sa.Column('values_json', sa.JSON(), nullable=False),
        sa.Column('source_entry_id', sa.Integer(),
                  sa.ForeignKey('adjustment_entries.id', ondelete='SET NULL'), nullable=True),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('employee_id', 'category', name='uq_default_template_emp_cat'),
    )


def downgrade() -> None:
    op.drop_table('default_templates')
    op.drop_table('adjustment_entry_lines')
    op.drop_index('ix_adj_entry_period', table_name='adjustment_entries')
    op.drop_table('adjustment_entries')
    op.drop_index('ix_emp_status_name', table_name='employees')
    op.drop_index('ix_emp_dept_id', table_name='employees')
    op.drop_table('employees')
    op.drop_table('role_permissions')
    op.drop_table('user_roles')
    op.drop_table('permissions')
    op.drop_table('roles')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.drop_table('departments')

    bind = op.get_bind()
    cutoff_enum.drop(bind, checkfirst=True)
    category_enum.drop(bind, checkfirst=True)
