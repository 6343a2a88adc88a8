# routes/correspondencia.py
from flask import Blueprint, jsonify, request
from flask_login import login_required

from config import (AA_DEPTS, AA_ROLES, DIR_DEPTS, DIR_ROLES, JEFE_ROLES,
                    RECEPCION_DEPTS, RECEPCION_ROLES, SUBDIR_DEPTS, SUBDIR_ROLES,
                    TEC_ROLES)
from decorators import actor_actual, catalogo, motor, requiere_depto_y_rol
from excepciones import ErrorValidacion
from routes.workflows import (ESTADOS_TERMINALES, TIMELINE, TRANSICIONES,
                              operaciones_disponibles)

correspondencia_bp = Blueprint('correspondencia', __name__, url_prefix='/correspondencia')

# Jefaturas y técnicos existen en cualquier departamento
TODOS = ['*']


def _payload():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ErrorValidacion('El cuerpo debe ser un objeto JSON')
    return data


def _respuesta(doc, operacion, status=200, mensaje=None):
    return jsonify({
        'success': True,
        'message': mensaje or TRANSICIONES[operacion]['mensaje'],
        'item': doc.to_dict(),
    }), status


# --- Recepción ---

@correspondencia_bp.route('/', methods=['POST'])
@login_required
@requiere_depto_y_rol(RECEPCION_DEPTS, RECEPCION_ROLES)
def crear():
    doc = motor().crear(actor_actual(), _payload())
    return _respuesta(doc, 'crear', status=201)


@correspondencia_bp.route('/', methods=['GET'])
# Compatibilidad: el rol de la URL no filtra, la bandeja sale del usuario en sesión
@correspondencia_bp.route('/inbox/<rol>', methods=['GET'])
@login_required
def listar(rol=None):
    resultado = motor().listar(actor_actual(), request.args)
    return jsonify({
        'success': True,
        'pagination': resultado['pagination'],
        'items': [doc.to_dict(con_historial=False) for doc in resultado['items']],
    })


@correspondencia_bp.route('/<id_corr>', methods=['GET'])
@login_required
def obtener(id_corr):
    doc = motor().obtener(id_corr)
    return jsonify({
        'success': True,
        'item': doc.to_dict(),
        'operaciones': operaciones_disponibles(doc.estado),
        'timeline': [estado.value for estado in TIMELINE],
        'terminal': doc.estado in ESTADOS_TERMINALES,
    })


@correspondencia_bp.route('/catalogo', methods=['GET'])
@login_required
def catalogo_destinos():
    """Destinos válidos para el formulario de instrucciones de Dirección."""
    cat = catalogo()
    return jsonify({
        'success': True,
        'subdirecciones': {
            subdir: list(cat.departamentos_de_subdireccion(subdir)) for subdir in cat.subdirecciones
        },
        'departamentos': [d for d in cat.departamentos if cat.departamento_enrutable(d)],
    })


@correspondencia_bp.route('/<id_corr>/recepcion/enviar-a-direccion', methods=['POST'])
@login_required
@requiere_depto_y_rol(RECEPCION_DEPTS, RECEPCION_ROLES)
def enviar_a_direccion(id_corr):
    doc = motor().enviar_a_direccion(id_corr, actor_actual(), _payload().get('notas'))
    return _respuesta(doc, 'enviar_a_direccion')


@correspondencia_bp.route('/<id_corr>/recepcion/aa/enviar-a-direccion', methods=['POST'])
@login_required
@requiere_depto_y_rol(AA_DEPTS, AA_ROLES)
def enviar_a_direccion_area_administrativa(id_corr):
    doc = motor().enviar_a_direccion_area_administrativa(
        id_corr, actor_actual(), _payload().get('notas')
    )
    return _respuesta(doc, 'enviar_a_direccion_area_administrativa')


@correspondencia_bp.route('/<id_corr>/recepcion/archivar', methods=['POST'])
@login_required
@requiere_depto_y_rol(RECEPCION_DEPTS, RECEPCION_ROLES)
def archivar(id_corr):
    doc = motor().recepcion_archivar(id_corr, actor_actual(), _payload().get('notas'))
    return _respuesta(doc, 'recepcion_archivar')


# --- Dirección ---

@correspondencia_bp.route('/<id_corr>/direccion/instrucciones-y-enviar', methods=['POST'])
@login_required
@requiere_depto_y_rol(DIR_DEPTS, DIR_ROLES)
def instruir_y_enviar(id_corr):
    data = _payload()
    doc = motor().instruir_y_enviar(
        id_corr,
        actor_actual(),
        role_destino=data.get('roleDestino'),
        subdireccion=data.get('subdireccion'),
        departamento=data.get('departamento'),
        instrucciones=data.get('instrucciones'),
    )
    return _respuesta(doc, 'instruir_y_enviar')


@correspondencia_bp.route('/<id_corr>/direccion/remitir-archivo', methods=['POST'])
@login_required
@requiere_depto_y_rol(DIR_DEPTS, DIR_ROLES)
def remitir_archivo(id_corr):
    doc = motor().direccion_remitir_archivo(id_corr, actor_actual(), _payload().get('notas'))
    return _respuesta(doc, 'direccion_remitir_archivo')


# --- Subdirección ---

@correspondencia_bp.route('/<id_corr>/subdireccion/aceptar', methods=['POST'])
@login_required
@requiere_depto_y_rol(SUBDIR_DEPTS, SUBDIR_ROLES)
def subdireccion_aceptar(id_corr):
    doc = motor().subdireccion_aceptar(id_corr, actor_actual())
    return _respuesta(doc, 'subdireccion_aceptar')


@correspondencia_bp.route('/<id_corr>/subdireccion/asignar-jefe', methods=['POST'])
@login_required
@requiere_depto_y_rol(SUBDIR_DEPTS, SUBDIR_ROLES)
def subdireccion_asignar_jefe(id_corr):
    doc = motor().subdireccion_asignar_jefe(id_corr, actor_actual(), _payload().get('jefeUserId'))
    return _respuesta(doc, 'subdireccion_asignar_jefe')


@correspondencia_bp.route('/<id_corr>/subdireccion/devolver-direccion', methods=['POST'])
@login_required
@requiere_depto_y_rol(SUBDIR_DEPTS, SUBDIR_ROLES)
def subdireccion_devolver_a_direccion(id_corr):
    doc = motor().subdireccion_devolver_a_direccion(id_corr, actor_actual(), _payload().get('notas'))
    return _respuesta(doc, 'subdireccion_devolver_a_direccion')


# --- Jefatura ---

@correspondencia_bp.route('/<id_corr>/jefe/aceptar', methods=['POST'])
@login_required
@requiere_depto_y_rol(TODOS, JEFE_ROLES)
def jefe_aceptar(id_corr):
    doc = motor().jefe_aceptar(id_corr, actor_actual())
    return _respuesta(doc, 'jefe_aceptar')


@correspondencia_bp.route('/<id_corr>/jefe/asignar-tecnico', methods=['POST'])
@login_required
@requiere_depto_y_rol(TODOS, JEFE_ROLES)
def jefe_asignar_tecnico(id_corr):
    data = _payload()
    tecnico_ref = data.get('tecnicoUserId') or data.get('tecnicoId')
    doc = motor().jefe_asignar_tecnico(id_corr, actor_actual(), tecnico_ref)
    return _respuesta(doc, 'jefe_asignar_tecnico')


@correspondencia_bp.route('/<id_corr>/jefe/devolver-arriba', methods=['POST'])
@login_required
@requiere_depto_y_rol(TODOS, JEFE_ROLES)
def jefe_devolver_arriba(id_corr):
    doc = motor().jefe_devolver_arriba(id_corr, actor_actual(), _payload().get('notas'))
    return _respuesta(doc, 'jefe_devolver_arriba')


# --- Técnico ---

@correspondencia_bp.route('/<id_corr>/tecnico/start', methods=['POST'])
@login_required
@requiere_depto_y_rol(TODOS, TEC_ROLES)
def tecnico_iniciar(id_corr):
    doc = motor().tecnico_iniciar(id_corr, actor_actual())
    return _respuesta(doc, 'tecnico_iniciar')


@correspondencia_bp.route('/<id_corr>/tecnico/resolver', methods=['POST'])
@login_required
@requiere_depto_y_rol(TODOS, TEC_ROLES)
def tecnico_resolver(id_corr):
    doc = motor().tecnico_resolver(id_corr, actor_actual(), _payload().get('notas'))
    return _respuesta(doc, 'tecnico_resolver')
