from flask import Blueprint, jsonify, request
from flask_login import login_required
from sqlalchemy.exc import IntegrityError

from decorators import actor_actual, catalogo, super_required
from excepciones import ErrorValidacion
from extensions import db
from log_activity import log_activity
from models import Role, User

admin_users_bp = Blueprint('admin_users', __name__, url_prefix='/admin/users')


@admin_users_bp.route('/')
@login_required
@super_required
def list_users():
    cat = catalogo()
    query = User.query.order_by(User.nombre)

    departamento = request.args.get('departamento')
    if departamento:
        query = query.filter(User.departamento == (cat.canonico_departamento(departamento) or departamento))

    rol = request.args.get('rol')
    if rol:
        query = query.filter(User.roles.any(Role.name == (cat.canonico_rol(rol) or rol)))

    return jsonify({'success': True, 'items': [u.to_dict() for u in query.all()]})


@admin_users_bp.route('/', methods=['POST'])
@login_required
@super_required
def create_user():
    cat = catalogo()
    data = request.get_json(silent=True) or {}

    email = str(data.get('email') or '').strip().lower()
    nombre = str(data.get('nombre') or '').strip()
    password = data.get('password')
    if not email or not nombre or not password:
        raise ErrorValidacion('email, nombre y password son requeridos.')

    departamento = cat.canonico_departamento(data.get('departamento'))
    if not departamento:
        raise ErrorValidacion('Departamento inválido')

    nombres_roles = data.get('roles') or []
    if isinstance(nombres_roles, str):
        nombres_roles = [nombres_roles]
    roles = []
    for nombre_rol in nombres_roles:
        canonico = cat.canonico_rol(nombre_rol)
        if not canonico:
            raise ErrorValidacion(f"Rol inválido: {nombre_rol}")
        if canonico not in roles:
            roles.append(canonico)
    if not roles:
        raise ErrorValidacion('Se requiere al menos un rol.')

    if User.query.filter_by(email=email).first():
        raise ErrorValidacion('Ya existe un usuario con ese email.')

    user = User(
        email=email,
        nombre=nombre,
        cargo=str(data.get('cargo') or '').strip(),
        departamento=departamento,
        activo=True,
    )
    user.set_password(password)
    user.roles = [Role.obtener_o_crear(r) for r in roles]
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ErrorValidacion('Ya existe un usuario con ese email.')

    log_activity(
        action='USER_CREATE',
        category='Usuarios',
        details=f"Se creó el usuario: {email}",
        resource_id=user.id,
        after=user.to_dict(),
        actor=actor_actual(),
    )
    return jsonify({'success': True, 'message': 'Usuario creado', 'item': user.to_dict()}), 201
