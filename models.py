import enum
from collections import namedtuple
from datetime import datetime, timezone

from flask import current_app
from flask_login import UserMixin
from sqlalchemy import CheckConstraint, Enum, UniqueConstraint
from werkzeug.security import generate_password_hash, check_password_hash

from extensions import db
from helpers import normalizar_nombre


def ahora():
    """UTC sin tzinfo, igual que lo guarda la base."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --- TABLAS DE UNIÓN (Many-to-Many Relationships) ---
user_roles = db.Table('user_roles',
    db.Column('user_id', db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), primary_key=True),
    db.Column('role_id', db.Integer, db.ForeignKey('role.id', ondelete='CASCADE'), primary_key=True)
)


# --- USUARIOS ---

class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    nombre = db.Column(db.String(100), nullable=False)
    cargo = db.Column(db.String(120), default='')
    departamento = db.Column(db.String(120), nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    activo = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=ahora)

    roles = db.relationship('Role', secondary=user_roles, backref='users')
    activity_logs = db.relationship('ActivityLog', back_populates='user', lazy=True)

    def set_password(self, password):
        method = current_app.config.get('PASSWORD_HASH_METHOD', 'scrypt')
        self.password_hash = generate_password_hash(password, method=method)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def is_active(self):
        return bool(self.activo)

    @property
    def nombres_roles(self):
        return [role.name for role in self.roles]

    @property
    def etiqueta(self):
        return self.nombre or self.email

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'nombre': self.nombre,
            'cargo': self.cargo,
            'departamento': self.departamento,
            'roles': self.nombres_roles,
            'activo': self.activo,
        }


class Role(db.Model):
    __tablename__ = 'role'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)
    description = db.Column(db.String(255))

    @classmethod
    def obtener_o_crear(cls, name):
        role = cls.query.filter_by(name=name).first()
        if not role:
            role = cls(name=name)
            db.session.add(role)
        return role


# --- BITÁCORA ---

class ActivityLog(db.Model):
    __tablename__ = 'activity_log'
    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=ahora, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    category = db.Column(db.String(100), index=True)
    details = db.Column(db.Text)
    resource_id = db.Column(db.String(50), index=True)
    changes = db.Column(db.JSON)
    tags = db.Column(db.JSON)
    user = db.relationship('User', back_populates='activity_logs')

    def to_dict(self):
        return {
            'id': self.id,
            'timestamp': _iso(self.timestamp),
            'userId': self.user_id,
            'action': self.action,
            'category': self.category,
            'details': self.details,
            'resourceId': self.resource_id,
            'changes': self.changes,
            'tags': self.tags or [],
        }


# --- CORRESPONDENCIA ---

class EstadoCorrespondencia(str, enum.Enum):
    EN_RECEPCION = 'EN_RECEPCION'

    EN_DIRECCION_POR_INSTRUIR = 'EN_DIRECCION_POR_INSTRUIR'
    EN_DIRECCION_POR_REASIGNAR = 'EN_DIRECCION_POR_REASIGNAR'

    EN_SUBDIRECCION_POR_RECIBIR = 'EN_SUBDIRECCION_POR_RECIBIR'
    RECIBIDO_EN_SUBDIRECCION = 'RECIBIDO_EN_SUBDIRECCION'

    EN_DEPARTAMENTO_POR_RECIBIR = 'EN_DEPARTAMENTO_POR_RECIBIR'
    RECIBIDO_EN_DEPARTAMENTO = 'RECIBIDO_EN_DEPARTAMENTO'

    ASIGNADO_A_TECNICO = 'ASIGNADO_A_TECNICO'
    EN_TRABAJO_TECNICO = 'EN_TRABAJO_TECNICO'
    RESUELTO_POR_TECNICO = 'RESUELTO_POR_TECNICO'

    EN_SUBDIRECCION_REVISION = 'EN_SUBDIRECCION_REVISION'
    EN_DIRECCION_REVISION_FINAL = 'EN_DIRECCION_REVISION_FINAL'

    EN_RECEPCION_PARA_ARCHIVO = 'EN_RECEPCION_PARA_ARCHIVO'
    ARCHIVADO = 'ARCHIVADO'

    # Reservado: ninguna transición lo produce ni lo consume.
    EN_RECEPCION_CORRECCION = 'EN_RECEPCION_CORRECCION'


DESTINO_SUBDIRECCION = 'SUBDIRECCION'
DESTINO_DEPARTAMENTO = 'DEPARTAMENTO'


class Destino(namedtuple('Destino', ['tipo', 'nombre'])):
    """Destino fijado por Dirección: subdirección, departamento o ninguno."""
    __slots__ = ()

    @classmethod
    def subdireccion(cls, nombre):
        return cls(DESTINO_SUBDIRECCION, nombre)

    @classmethod
    def departamento(cls, nombre):
        return cls(DESTINO_DEPARTAMENTO, nombre)

    @classmethod
    def ninguno(cls):
        return cls(None, None)

    @property
    def es_subdireccion(self):
        return self.tipo == DESTINO_SUBDIRECCION


class Correspondencia(db.Model):
    """
    Expediente que recorre Recepción -> Dirección -> Subdirección/Jefatura
    -> Técnico y de regreso hasta el archivo.

    El estado y el propietario (owner_dept, owner_role, owner_user_id) sólo
    cambian a través de MotorCorrespondencia; cada cambio deja un renglón en
    el historial.
    """
    __tablename__ = 'correspondencia'
    __table_args__ = (
        CheckConstraint(
            "(destino_tipo IS NULL AND destino_subdireccion IS NULL AND destino_departamento IS NULL)"
            " OR (destino_tipo = 'SUBDIRECCION' AND destino_subdireccion IS NOT NULL AND destino_departamento IS NULL)"
            " OR (destino_tipo = 'DEPARTAMENTO' AND destino_departamento IS NOT NULL AND destino_subdireccion IS NULL)",
            name='ck_correspondencia_destino'
        ),
        db.Index('ix_correspondencia_bandeja', 'estado', 'owner_dept', 'owner_role', 'updated_at'),
    )

    id = db.Column(db.Integer, primary_key=True)

    # --- Ingreso en Recepción ---
    reg_expediente = db.Column(db.String(100), index=True)
    confirmacion = db.Column(db.Boolean, default=False, nullable=False)
    movimiento = db.Column(Enum('RECIBIDO', 'ENVIADO', name='movimiento_correspondencia_enum'),
                           default='RECIBIDO', nullable=False)
    documento_recibido = db.Column(db.String(255), index=True)
    enviado_por = db.Column(db.String(255))
    folios_recibidos = db.Column(db.Integer, default=0, nullable=False)
    observaciones = db.Column(db.Text)
    profesionales = db.Column(db.JSON, default=list)
    # Nombres normalizados, uno por línea, para la búsqueda de texto
    profesionales_texto = db.Column(db.Text, default='')
    onedrive_url = db.Column(db.String(1024), nullable=False)

    # --- Dirección ---
    instrucciones_direccion = db.Column(db.Text)

    # --- Destino (usar la propiedad `destino`) ---
    destino_tipo = db.Column(Enum(DESTINO_SUBDIRECCION, DESTINO_DEPARTAMENTO, name='destino_tipo_enum'), nullable=True)
    destino_subdireccion = db.Column(db.String(120), nullable=True)
    destino_departamento = db.Column(db.String(120), nullable=True)

    # --- Asignaciones ---
    jefe_asignado_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    jefe_asignado_label = db.Column(db.String(255))
    tecnico_asignado_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    tecnico_asignado_label = db.Column(db.String(255))

    # --- Estado y propietario (bandejas) ---
    estado = db.Column(
        Enum(EstadoCorrespondencia, name='estado_correspondencia_enum'),
        nullable=False,
        default=EstadoCorrespondencia.EN_RECEPCION,
        index=True
    )
    owner_dept = db.Column(db.String(120), nullable=False, index=True)
    owner_role = db.Column(db.String(50), nullable=False, index=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)

    recepcion_envio_direccion_at = db.Column(db.DateTime, nullable=True)
    recepcion_envio_direccion_por_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)

    activo = db.Column(db.Boolean, default=True, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=ahora, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=ahora, onupdate=ahora, nullable=False, index=True)

    # Control optimista: UPDATE ... WHERE version = <leída>
    version = db.Column(db.Integer, nullable=False)
    __mapper_args__ = {'version_id_col': version}

    historial = db.relationship(
        'HistorialCorrespondencia',
        back_populates='correspondencia',
        order_by='HistorialCorrespondencia.orden',
        cascade='all, delete-orphan',
        lazy=True
    )

    @property
    def destino(self):
        if self.destino_tipo == DESTINO_SUBDIRECCION:
            return Destino.subdireccion(self.destino_subdireccion)
        if self.destino_tipo == DESTINO_DEPARTAMENTO:
            return Destino.departamento(self.destino_departamento)
        return Destino.ninguno()

    @destino.setter
    def destino(self, destino):
        destino = destino or Destino.ninguno()
        if destino.tipo not in (None, DESTINO_SUBDIRECCION, DESTINO_DEPARTAMENTO):
            raise ValueError(f"Tipo de destino inválido: {destino.tipo}")
        if destino.tipo and not destino.nombre:
            raise ValueError("Un destino con tipo requiere nombre")
        self.destino_tipo = destino.tipo
        self.destino_subdireccion = destino.nombre if destino.tipo == DESTINO_SUBDIRECCION else None
        self.destino_departamento = destino.nombre if destino.tipo == DESTINO_DEPARTAMENTO else None

    def fijar_profesionales(self, nombres):
        self.profesionales = list(nombres)
        self.profesionales_texto = '\n'.join(normalizar_nombre(n) for n in self.profesionales)

    def asignar_propietario(self, dept, role, user_id=None):
        self.owner_dept = dept
        self.owner_role = role
        self.owner_user_id = user_id

    def to_dict(self, con_historial=True):
        data = {
            'id': self.id,
            'regExpediente': self.reg_expediente,
            'confirmacion': self.confirmacion,
            'movimiento': self.movimiento,
            'documentoRecibido': self.documento_recibido,
            'enviadoPor': self.enviado_por,
            'foliosRecibidos': self.folios_recibidos,
            'observaciones': self.observaciones,
            'profesionales': list(self.profesionales or []),
            'onedriveUrl': self.onedrive_url,
            'instruccionesDireccion': self.instrucciones_direccion,
            'destinoTipo': self.destino_tipo,
            'destinoSubdireccion': self.destino_subdireccion,
            'destinoDepartamento': self.destino_departamento,
            'jefeAsignadoId': self.jefe_asignado_id,
            'jefeAsignadoLabel': self.jefe_asignado_label,
            'tecnicoAsignadoId': self.tecnico_asignado_id,
            'tecnicoAsignadoLabel': self.tecnico_asignado_label,
            'estado': self.estado.value if self.estado else None,
            'ownerDept': self.owner_dept,
            'ownerRole': self.owner_role,
            'ownerUserId': self.owner_user_id,
            'recepcionAsignoADireccionAt': _iso(self.recepcion_envio_direccion_at),
            'recepcionAsignoADireccionPorId': self.recepcion_envio_direccion_por_id,
            'isActive': self.activo,
            'createdBy': self.created_by,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
        if con_historial:
            data['historial'] = [h.to_dict() for h in self.historial]
        return data


class HistorialCorrespondencia(db.Model):
    """Renglón del historial. Sólo se inserta; nunca se edita ni se reordena."""
    __tablename__ = 'historial_correspondencia'
    __table_args__ = (
        UniqueConstraint('correspondencia_id', 'orden', name='uq_historial_orden'),
    )

    id = db.Column(db.Integer, primary_key=True)
    correspondencia_id = db.Column(db.Integer, db.ForeignKey('correspondencia.id', ondelete='CASCADE'), nullable=False, index=True)
    orden = db.Column(db.Integer, nullable=False)
    fecha = db.Column(db.DateTime, default=ahora, nullable=False)
    accion = db.Column(db.String(60), nullable=False)
    estado_origen = db.Column(db.String(50), nullable=True)
    estado_destino = db.Column(db.String(50), nullable=True)
    notas = db.Column(db.Text, default='')
    actor_user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    actor_dept = db.Column(db.String(120), nullable=True)
    actor_role = db.Column(db.String(50), nullable=True)

    correspondencia = db.relationship('Correspondencia', back_populates='historial')

    def to_dict(self):
        return {
            'at': _iso(self.fecha),
            'action': self.accion,
            'fromState': self.estado_origen,
            'toState': self.estado_destino,
            'notes': self.notas or '',
            'actorUserId': self.actor_user_id,
            'actorDept': self.actor_dept,
            'actorRole': self.actor_role,
        }


def _iso(valor):
    return valor.isoformat() if valor else None
