"""Esquema inicial: usuarios, roles, bitácora y correspondencia con historial

Revision ID: 3a9c1e7f2b40
Revises:
Create Date: 2026-10-18 10:12:31.504112

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3a9c1e7f2b40'
down_revision = None
branch_labels = None
depends_on = None

ESTADOS = (
    'EN_RECEPCION',
    'EN_DIRECCION_POR_INSTRUIR', 'EN_DIRECCION_POR_REASIGNAR',
    'EN_SUBDIRECCION_POR_RECIBIR', 'RECIBIDO_EN_SUBDIRECCION',
    'EN_DEPARTAMENTO_POR_RECIBIR', 'RECIBIDO_EN_DEPARTAMENTO',
    'ASIGNADO_A_TECNICO', 'EN_TRABAJO_TECNICO', 'RESUELTO_POR_TECNICO',
    'EN_SUBDIRECCION_REVISION', 'EN_DIRECCION_REVISION_FINAL',
    'EN_RECEPCION_PARA_ARCHIVO', 'ARCHIVADO',
    'EN_RECEPCION_CORRECCION',
)


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('nombre', sa.String(length=100), nullable=False),
        sa.Column('cargo', sa.String(length=120), nullable=True),
        sa.Column('departamento', sa.String(length=120), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)
    op.create_index('ix_user_departamento', 'user', ['departamento'])

    op.create_table(
        'role',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=80), nullable=False, unique=True),
        sa.Column('description', sa.String(length=255), nullable=True),
    )

    op.create_table(
        'user_roles',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('role.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('resource_id', sa.String(length=50), nullable=True),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
    )
    op.create_index('ix_activity_log_timestamp', 'activity_log', ['timestamp'])
    op.create_index('ix_activity_log_action', 'activity_log', ['action'])
    op.create_index('ix_activity_log_category', 'activity_log', ['category'])
    op.create_index('ix_activity_log_resource_id', 'activity_log', ['resource_id'])

    op.create_table(
        'correspondencia',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('reg_expediente', sa.String(length=100), nullable=True),
        sa.Column('confirmacion', sa.Boolean(), nullable=False),
        sa.Column('movimiento', sa.Enum('RECIBIDO', 'ENVIADO', name='movimiento_correspondencia_enum'), nullable=False),
        sa.Column('documento_recibido', sa.String(length=255), nullable=True),
        sa.Column('enviado_por', sa.String(length=255), nullable=True),
        sa.Column('folios_recibidos', sa.Integer(), nullable=False),
        sa.Column('observaciones', sa.Text(), nullable=True),
        sa.Column('profesionales', sa.JSON(), nullable=True),
        sa.Column('profesionales_texto', sa.Text(), nullable=True),
        sa.Column('onedrive_url', sa.String(length=1024), nullable=False),
        sa.Column('instrucciones_direccion', sa.Text(), nullable=True),
        sa.Column('destino_tipo', sa.Enum('SUBDIRECCION', 'DEPARTAMENTO', name='destino_tipo_enum'), nullable=True),
        sa.Column('destino_subdireccion', sa.String(length=120), nullable=True),
        sa.Column('destino_departamento', sa.String(length=120), nullable=True),
        sa.Column('jefe_asignado_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('jefe_asignado_label', sa.String(length=255), nullable=True),
        sa.Column('tecnico_asignado_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('tecnico_asignado_label', sa.String(length=255), nullable=True),
        sa.Column('estado', sa.Enum(*ESTADOS, name='estado_correspondencia_enum'), nullable=False),
        sa.Column('owner_dept', sa.String(length=120), nullable=False),
        sa.Column('owner_role', sa.String(length=50), nullable=False),
        sa.Column('owner_user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('recepcion_envio_direccion_at', sa.DateTime(), nullable=True),
        sa.Column('recepcion_envio_direccion_por_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "(destino_tipo IS NULL AND destino_subdireccion IS NULL AND destino_departamento IS NULL)"
            " OR (destino_tipo = 'SUBDIRECCION' AND destino_subdireccion IS NOT NULL AND destino_departamento IS NULL)"
            " OR (destino_tipo = 'DEPARTAMENTO' AND destino_departamento IS NOT NULL AND destino_subdireccion IS NULL)",
            name='ck_correspondencia_destino'
        ),
    )
    op.create_index('ix_correspondencia_reg_expediente', 'correspondencia', ['reg_expediente'])
    op.create_index('ix_correspondencia_documento_recibido', 'correspondencia', ['documento_recibido'])
    op.create_index('ix_correspondencia_estado', 'correspondencia', ['estado'])
    op.create_index('ix_correspondencia_owner_dept', 'correspondencia', ['owner_dept'])
    op.create_index('ix_correspondencia_owner_role', 'correspondencia', ['owner_role'])
    op.create_index('ix_correspondencia_owner_user_id', 'correspondencia', ['owner_user_id'])
    op.create_index('ix_correspondencia_created_by', 'correspondencia', ['created_by'])
    op.create_index('ix_correspondencia_created_at', 'correspondencia', ['created_at'])
    op.create_index('ix_correspondencia_updated_at', 'correspondencia', ['updated_at'])
    op.create_index('ix_correspondencia_bandeja', 'correspondencia',
                    ['estado', 'owner_dept', 'owner_role', 'updated_at'])

    op.create_table(
        'historial_correspondencia',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('correspondencia_id', sa.Integer(),
                  sa.ForeignKey('correspondencia.id', ondelete='CASCADE'), nullable=False),
        sa.Column('orden', sa.Integer(), nullable=False),
        sa.Column('fecha', sa.DateTime(), nullable=False),
        sa.Column('accion', sa.String(length=60), nullable=False),
        sa.Column('estado_origen', sa.String(length=50), nullable=True),
        sa.Column('estado_destino', sa.String(length=50), nullable=True),
        sa.Column('notas', sa.Text(), nullable=True),
        sa.Column('actor_user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='SET NULL'), nullable=True),
        sa.Column('actor_dept', sa.String(length=120), nullable=True),
        sa.Column('actor_role', sa.String(length=50), nullable=True),
        sa.UniqueConstraint('correspondencia_id', 'orden', name='uq_historial_orden'),
    )
    op.create_index('ix_historial_correspondencia_correspondencia_id',
                    'historial_correspondencia', ['correspondencia_id'])


def downgrade():
    op.drop_table('historial_correspondencia')
    op.drop_table('correspondencia')
    op.drop_table('activity_log')
    op.drop_table('user_roles')
    op.drop_table('role')
    op.drop_table('user')
