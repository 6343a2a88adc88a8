# decorators.py

from functools import wraps

from flask import current_app, g
from flask_login import current_user

from excepciones import CorrespondenciaError, NoAutenticado, Prohibido


def catalogo():
    return current_app.extensions['catalogo_organizacion']


def motor():
    return current_app.extensions['motor_correspondencia']


def actor_actual():
    """
    Actor de la petición en curso (o None si no hay sesión).
    Se canonicaliza contra el catálogo una sola vez y queda en `g`.
    """
    if 'actor' not in g:
        if current_user and current_user.is_authenticated:
            g.actor = catalogo().actor_desde_usuario(current_user)
        else:
            g.actor = None
    return g.actor


def requiere_depto_y_rol(departamentos, roles):
    """
    Restringe la vista a usuarios cuyo departamento Y alguno de sus roles
    estén en las listas dadas. '*' en una lista acepta cualquier valor.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            actor = actor_actual()
            if actor is None:
                raise NoAutenticado()

            if not departamentos or not roles:
                current_app.logger.error(f"[AUTH] Lista de acceso vacía en {f.__name__}")
                raise CorrespondenciaError('Configuración de permisos inválida')

            cat = catalogo()
            depto_ok = '*' in departamentos or any(
                cat.mismo_nombre(actor.departamento, d) for d in departamentos
            )
            rol_ok = '*' in roles or any(
                cat.canonico_rol(r) in actor.roles for r in roles
            )
            if not (depto_ok and rol_ok):
                current_app.logger.info(
                    f"[AUTH] {actor.etiqueta} ({actor.departamento}/{','.join(actor.roles)}) sin acceso a {f.__name__}"
                )
                raise Prohibido('No autorizado por departamento/rol')

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def super_required(f):
    """Sólo super-roles (ADMIN, DESAROLLADOR)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = actor_actual()
        if actor is None:
            raise NoAutenticado()
        if not actor.es_super:
            raise Prohibido('No tienes permisos para acceder a este recurso.')
        return f(*args, **kwargs)
    return decorated_function
