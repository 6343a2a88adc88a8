"""Transiciones del motor de correspondencia, sin pasar por HTTP."""
import pytest
from sqlalchemy import text

from conftest import recargar
from excepciones import (ErrorValidacion, EstadoInvalido, ModificacionConcurrente,
                         NoAutenticado, NoEncontrado, Prohibido)
from extensions import db
from models import ActivityLog, Correspondencia, EstadoCorrespondencia as E
from motor_correspondencia import MotorCorrespondencia

SUBDIR_EVAL = 'SUBDIRECCION EVALUACION CURRICULAR'


def _en_subdireccion(motor, actor, id_corr):
    motor.enviar_a_direccion(id_corr, actor('asistente'))
    motor.instruir_y_enviar(id_corr, actor('director'), 'SUBDIRECTOR',
                            subdireccion='Subdirección Evaluación Curricular',
                            instrucciones='Atender a la brevedad')


def _con_tecnico(motor, actor, usuarios, id_corr):
    _en_subdireccion(motor, actor, id_corr)
    motor.subdireccion_asignar_jefe(id_corr, actor('subdir_eval'), usuarios['jefe_primaria'])
    motor.jefe_asignar_tecnico(id_corr, actor('jefe_primaria'), usuarios['tecnico_a'])


# --- Alta ---

def test_crear_deja_un_renglon_y_queda_en_recepcion(motor, actor, nuevo_expediente):
    doc = recargar(nuevo_expediente())

    assert doc.estado == E.EN_RECEPCION
    assert (doc.owner_dept, doc.owner_role, doc.owner_user_id) == ('AREA ADMINISTRATIVA', 'ASISTENTE', None)
    assert len(doc.historial) == 1
    assert doc.historial[0].estado_origen is None
    assert doc.historial[0].estado_destino == 'EN_RECEPCION'
    assert doc.historial[0].accion == 'RECEPCION_CREATE'
    assert doc.created_by == actor('asistente').id
    assert doc.destino.tipo is None
    assert doc.version == 1


def test_crear_rechaza_enlace_a_carpeta(motor, actor):
    with pytest.raises(ErrorValidacion):
        motor.crear(actor('asistente'), {'onedriveUrl': 'https://1drv.ms/f/s!AkLx8s9qTd2bgQ'})
    assert Correspondencia.query.count() == 0


def test_crear_sin_url(motor, actor):
    with pytest.raises(ErrorValidacion):
        motor.crear(actor('asistente'), {'regExpediente': 'EXP-9'})


def test_crear_folios_invalidos(motor, actor, nuevo_expediente):
    with pytest.raises(ErrorValidacion):
        nuevo_expediente(foliosRecibidos=-1)
    with pytest.raises(ErrorValidacion):
        nuevo_expediente(foliosRecibidos='muchos')
    doc = recargar(nuevo_expediente(foliosRecibidos=''))
    assert doc.folios_recibidos == 0


def test_crear_normaliza_campos(motor, actor, nuevo_expediente):
    doc = recargar(nuevo_expediente(profesionales=[' Lic. A ', '', 'Ing. B'],
                                    movimiento='ENVIADO', confirmacion='true'))
    assert doc.profesionales_texto == 'LIC. A\nING. B'
    assert doc.profesionales == ['Lic. A', 'Ing. B']
    assert doc.movimiento == 'ENVIADO'
    assert doc.confirmacion is True


def test_sin_actor_no_autenticado(motor, nuevo_expediente):
    id_corr = nuevo_expediente()
    with pytest.raises(NoAutenticado):
        motor.enviar_a_direccion(id_corr, None)


# --- Guardas genéricas ---

def test_expediente_inexistente(motor, actor, usuarios):
    with pytest.raises(NoEncontrado):
        motor.enviar_a_direccion(999, actor('asistente'))
    with pytest.raises(ErrorValidacion):
        motor.obtener('abc')


def test_estado_invalido_no_modifica_nada(motor, actor, nuevo_expediente):
    id_corr = nuevo_expediente()
    motor.enviar_a_direccion(id_corr, actor('asistente'))

    with pytest.raises(EstadoInvalido) as exc:
        motor.enviar_a_direccion(id_corr, actor('asistente'))
    assert exc.value.status_code == 400

    doc = recargar(id_corr)
    assert doc.estado == E.EN_DIRECCION_POR_INSTRUIR
    assert len(doc.historial) == 2


def test_historial_crece_uno_por_transicion(motor, actor, nuevo_expediente):
    id_corr = nuevo_expediente()
    motor.enviar_a_direccion(id_corr, actor('asistente'))
    motor.instruir_y_enviar(id_corr, actor('director'), 'JEFE', departamento='Area Financiera')

    historial = recargar(id_corr).historial
    assert [h.orden for h in historial] == [1, 2, 3]
    assert [h.estado_destino for h in historial] == [
        'EN_RECEPCION', 'EN_DIRECCION_POR_INSTRUIR', 'EN_DEPARTAMENTO_POR_RECIBIR',
    ]
    # Cada renglón parte de donde terminó el anterior
    for anterior, actual in zip(historial, historial[1:]):
        assert actual.estado_origen == anterior.estado_destino
    assert historial[-1].notas == 'Destino: AREA FINANCIERA'
    assert historial[-1].actor_role == 'DIRECTOR'


# --- Recepción ---

def test_enviar_a_direccion(motor, actor, nuevo_expediente):
    id_corr = nuevo_expediente()
    motor.enviar_a_direccion(id_corr, actor('asistente'), notas='Urgente')

    doc = recargar(id_corr)
    assert doc.estado == E.EN_DIRECCION_POR_INSTRUIR
    assert (doc.owner_dept, doc.owner_role, doc.owner_user_id) == ('DIRECCION', 'DIRECTOR', None)
    assert doc.historial[-1].notas == 'Urgente'
    assert doc.recepcion_envio_direccion_at is None


def test_variante_area_administrativa_sella_el_envio(motor, actor, nuevo_expediente):
    id_corr = nuevo_expediente()
    asistente = actor('asistente')
    motor.enviar_a_direccion_area_administrativa(id_corr, asistente)

    doc = recargar(id_corr)
    assert doc.estado == E.EN_DIRECCION_POR_INSTRUIR
    assert doc.recepcion_envio_direccion_por_id == asistente.id
    assert doc.recepcion_envio_direccion_at is not None
    assert doc.historial[-1].accion == 'AA_ASISTENTE_ENVIA_DIRECCION'


def test_variante_area_administrativa_solo_asistente(motor, actor, nuevo_expediente):
    id_corr = nuevo_expediente()
    for clave in ('director', 'admin'):
        with pytest.raises(Prohibido):
            motor.enviar_a_direccion_area_administrativa(id_corr, actor(clave))
    assert recargar(id_corr).estado == E.EN_RECEPCION


# --- Dirección ---

def test_instruir_a_subdireccion_guarda_forma_canonica(motor, actor, nuevo_expediente):
    id_corr = nuevo_expediente()
    _en_subdireccion(motor, actor, id_corr)

    doc = recargar(id_corr)
    assert doc.estado == E.EN_SUBDIRECCION_POR_RECIBIR
    assert doc.destino.es_subdireccion
    assert doc.destino_subdireccion == SUBDIR_EVAL
    assert doc.destino_departamento is None
    assert doc.instrucciones_direccion == 'Atender a la brevedad'
    assert (doc.owner_dept, doc.owner_role, doc.owner_user_id) == (SUBDIR_EVAL, 'SUBDIRECTOR', None)


def test_instruir_a_departamento_directo(motor, actor, nuevo_expediente):
    id_corr = nuevo_expediente()
    motor.enviar_a_direccion(id_corr, actor('asistente'))
    motor.instruir_y_enviar(id_corr, actor('director'), 'jefe', departamento='área financiera')

    doc = recargar(id_corr)
    assert doc.estado == E.EN_DEPARTAMENTO_POR_RECIBIR
    assert doc.destino_departamento == 'AREA FINANCIERA'
    assert doc.destino_subdireccion is None
    assert (doc.owner_dept, doc.owner_role) == ('AREA FINANCIERA', 'JEFE')


@pytest.mark.parametrize('kwargs', [
    {'role_destino': 'TECNICO', 'departamento': 'PRIMARIA'},
    {'role_destino': None},
    {'role_destino': 'SUBDIRECTOR', 'subdireccion': 'PRIMARIA'},
    {'role_destino': 'SUBDIRECTOR'},
    {'role_destino': 'JEFE', 'departamento': 'CONTABILIDAD'},
    {'role_destino': 'JEFE', 'departamento': 'DIRECCION'},
    {'role_destino': 'JEFE'},
])
def test_instruir_parametros_invalidos(motor, actor, nuevo_expediente, kwargs):
    id_corr = nuevo_expediente()
    motor.enviar_a_direccion(id_corr, actor('asistente'))
    with pytest.raises(ErrorValidacion):
        motor.instruir_y_enviar(id_corr, actor('director'), **kwargs)

    doc = recargar(id_corr)
    assert doc.estado == E.EN_DIRECCION_POR_INSTRUIR
    assert len(doc.historial) == 2


def test_instruir_desde_recepcion_es_estado_invalido(motor, actor, nuevo_expediente):
    id_corr = nuevo_expediente()
    with pytest.raises(EstadoInvalido):
        motor.instruir_y_enviar(id_corr, actor('director'), 'JEFE', departamento='PRIMARIA')


# --- Subdirección ---

def test_subdireccion_acepta_y_asigna_jefe(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _en_subdireccion(motor, actor, id_corr)
    motor.subdireccion_aceptar(id_corr, actor('subdir_eval'))
    assert recargar(id_corr).estado == E.RECIBIDO_EN_SUBDIRECCION

    motor.subdireccion_asignar_jefe(id_corr, actor('subdir_eval'), usuarios['jefe_primaria'])

    doc = recargar(id_corr)
    assert doc.estado == E.EN_DEPARTAMENTO_POR_RECIBIR
    # El departamento sale del jefe, no de la subdirección
    assert (doc.owner_dept, doc.owner_role, doc.owner_user_id) == ('PRIMARIA', 'JEFE', usuarios['jefe_primaria'])
    assert doc.jefe_asignado_id == usuarios['jefe_primaria']
    assert doc.jefe_asignado_label == 'Julia Jefa'
    assert doc.historial[-1].notas == 'Dept (auto): PRIMARIA; Jefe: Julia Jefa'


def test_asignar_jefe_con_aceptacion_implicita(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _en_subdireccion(motor, actor, id_corr)
    antes = len(recargar(id_corr).historial)

    motor.subdireccion_asignar_jefe(id_corr, actor('subdir_eval'), usuarios['jefe_primaria'])

    doc = recargar(id_corr)
    nuevos = doc.historial[antes:]
    assert len(nuevos) == 2
    assert nuevos[0].accion == 'SUBDIR_ACEPTAR_IMPLICITO'
    assert (nuevos[0].estado_origen, nuevos[0].estado_destino) == (
        'EN_SUBDIRECCION_POR_RECIBIR', 'RECIBIDO_EN_SUBDIRECCION')
    assert nuevos[1].accion == 'SUBDIR_ASIGNA_JEFE'
    assert nuevos[1].estado_origen == 'RECIBIDO_EN_SUBDIRECCION'
    assert doc.estado == E.EN_DEPARTAMENTO_POR_RECIBIR
    assert doc.owner_dept == 'PRIMARIA'


def test_aceptacion_implicita_requiere_subdirector(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _en_subdireccion(motor, actor, id_corr)
    with pytest.raises(EstadoInvalido):
        motor.subdireccion_asignar_jefe(id_corr, actor('admin'), usuarios['jefe_primaria'])


def test_asignar_jefe_de_otra_subdireccion_prohibido(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _en_subdireccion(motor, actor, id_corr)
    with pytest.raises(Prohibido):
        motor.subdireccion_asignar_jefe(id_corr, actor('subdir_diseno'), usuarios['jefe_primaria'])

    doc = recargar(id_corr)
    assert doc.estado == E.EN_SUBDIRECCION_POR_RECIBIR
    assert doc.jefe_asignado_id is None


def test_asignar_jefe_objetivo_invalido(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _en_subdireccion(motor, actor, id_corr)
    subdir = actor('subdir_eval')

    with pytest.raises(ErrorValidacion):
        motor.subdireccion_asignar_jefe(id_corr, subdir, None)
    with pytest.raises(NoEncontrado):
        motor.subdireccion_asignar_jefe(id_corr, subdir, 99999)
    with pytest.raises(NoEncontrado):
        motor.subdireccion_asignar_jefe(id_corr, subdir, usuarios['jefe_inactivo'])
    with pytest.raises(ErrorValidacion):
        motor.subdireccion_asignar_jefe(id_corr, subdir, usuarios['tecnico_a'])

    assert recargar(id_corr).estado == E.EN_SUBDIRECCION_POR_RECIBIR


# --- Jefatura y técnico ---

def test_jefe_asigna_tecnico_por_email(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _en_subdireccion(motor, actor, id_corr)
    motor.subdireccion_asignar_jefe(id_corr, actor('subdir_eval'), usuarios['jefe_primaria'])
    motor.jefe_aceptar(id_corr, actor('jefe_primaria'))
    motor.jefe_asignar_tecnico(id_corr, actor('jefe_primaria'), 'TECNICO_B@Correspondencia.test')

    doc = recargar(id_corr)
    assert doc.estado == E.ASIGNADO_A_TECNICO
    assert (doc.owner_dept, doc.owner_role, doc.owner_user_id) == ('PRIMARIA', 'TECNICO', usuarios['tecnico_b'])
    assert doc.tecnico_asignado_label == 'Teresa Técnica'


def test_jefe_de_otro_departamento_no_asigna(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _en_subdireccion(motor, actor, id_corr)
    motor.subdireccion_asignar_jefe(id_corr, actor('subdir_eval'), usuarios['jefe_primaria'])

    with pytest.raises(Prohibido):
        motor.jefe_asignar_tecnico(id_corr, actor('jefe_basico'), usuarios['tecnico_a'])
    doc = recargar(id_corr)
    assert doc.estado == E.EN_DEPARTAMENTO_POR_RECIBIR
    assert doc.tecnico_asignado_id is None


def test_asignar_tecnico_sin_rol(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _en_subdireccion(motor, actor, id_corr)
    motor.subdireccion_asignar_jefe(id_corr, actor('subdir_eval'), usuarios['jefe_primaria'])
    with pytest.raises(ErrorValidacion):
        motor.jefe_asignar_tecnico(id_corr, actor('jefe_primaria'), usuarios['lector'])


def test_tecnico_ajeno_no_puede_resolver(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _con_tecnico(motor, actor, usuarios, id_corr)
    motor.tecnico_iniciar(id_corr, actor('tecnico_a'))

    with pytest.raises(Prohibido):
        motor.tecnico_resolver(id_corr, actor('tecnico_b'))

    doc = recargar(id_corr)
    assert doc.estado == E.EN_TRABAJO_TECNICO
    assert doc.owner_user_id == usuarios['tecnico_a']


def test_tecnico_ajeno_no_puede_iniciar(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _con_tecnico(motor, actor, usuarios, id_corr)
    with pytest.raises(Prohibido):
        motor.tecnico_iniciar(id_corr, actor('tecnico_fin'))
    assert recargar(id_corr).estado == E.ASIGNADO_A_TECNICO


def test_resolver_devuelve_al_jefe_asignado(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _con_tecnico(motor, actor, usuarios, id_corr)
    motor.tecnico_iniciar(id_corr, actor('tecnico_a'))
    motor.tecnico_resolver(id_corr, actor('tecnico_a'), notas='Listo')

    doc = recargar(id_corr)
    assert doc.estado == E.RESUELTO_POR_TECNICO
    assert (doc.owner_dept, doc.owner_role, doc.owner_user_id) == ('PRIMARIA', 'JEFE', usuarios['jefe_primaria'])


def test_jefe_puede_reasignar_tras_resolucion(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _con_tecnico(motor, actor, usuarios, id_corr)
    motor.tecnico_iniciar(id_corr, actor('tecnico_a'))
    motor.tecnico_resolver(id_corr, actor('tecnico_a'))
    motor.jefe_asignar_tecnico(id_corr, actor('jefe_primaria'), usuarios['tecnico_b'])

    doc = recargar(id_corr)
    assert doc.estado == E.ASIGNADO_A_TECNICO
    assert doc.owner_user_id == usuarios['tecnico_b']


def test_jefe_devuelve_a_subdireccion(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _con_tecnico(motor, actor, usuarios, id_corr)
    motor.tecnico_iniciar(id_corr, actor('tecnico_a'))
    motor.tecnico_resolver(id_corr, actor('tecnico_a'))

    with pytest.raises(Prohibido):
        motor.jefe_devolver_arriba(id_corr, actor('jefe_basico'))

    motor.jefe_devolver_arriba(id_corr, actor('jefe_primaria'))
    doc = recargar(id_corr)
    assert doc.estado == E.EN_SUBDIRECCION_REVISION
    assert (doc.owner_dept, doc.owner_role, doc.owner_user_id) == (SUBDIR_EVAL, 'SUBDIRECTOR', None)


def test_super_rol_pasa_la_validacion_de_propietario(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _con_tecnico(motor, actor, usuarios, id_corr)
    motor.tecnico_iniciar(id_corr, actor('admin'))
    assert recargar(id_corr).estado == E.EN_TRABAJO_TECNICO


# --- Escenarios completos ---

def test_recorrido_completo_por_subdireccion(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    _en_subdireccion(motor, actor, id_corr)
    motor.subdireccion_aceptar(id_corr, actor('subdir_eval'))
    motor.subdireccion_asignar_jefe(id_corr, actor('subdir_eval'), usuarios['jefe_primaria'])
    motor.jefe_aceptar(id_corr, actor('jefe_primaria'))
    motor.jefe_asignar_tecnico(id_corr, actor('jefe_primaria'), usuarios['tecnico_a'])
    motor.tecnico_iniciar(id_corr, actor('tecnico_a'))
    motor.tecnico_resolver(id_corr, actor('tecnico_a'))
    motor.jefe_devolver_arriba(id_corr, actor('jefe_primaria'))
    motor.subdireccion_devolver_a_direccion(id_corr, actor('subdir_eval'))

    doc = recargar(id_corr)
    assert doc.estado == E.EN_DIRECCION_REVISION_FINAL
    assert (doc.owner_dept, doc.owner_role, doc.owner_user_id) == ('DIRECCION', 'DIRECTOR', None)

    motor.direccion_remitir_archivo(id_corr, actor('director'))
    motor.recepcion_archivar(id_corr, actor('asistente'))

    doc = recargar(id_corr)
    assert doc.estado == E.ARCHIVADO
    assert (doc.owner_dept, doc.owner_role) == ('AREA ADMINISTRATIVA', 'ASISTENTE')
    assert len(doc.historial) == 13
    assert doc.version == 13

    # Archivado es terminal
    with pytest.raises(EstadoInvalido):
        motor.recepcion_archivar(id_corr, actor('asistente'))


def test_recorrido_directo_a_departamento(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    motor.enviar_a_direccion(id_corr, actor('asistente'))
    motor.instruir_y_enviar(id_corr, actor('director'), 'JEFE', departamento='AREA FINANCIERA')
    antes = len(recargar(id_corr).historial)

    # Asignar sin aceptar antes: la jefatura recibe en el mismo paso
    motor.jefe_asignar_tecnico(id_corr, actor('jefe_financiera'), usuarios['tecnico_fin'])

    doc = recargar(id_corr)
    assert [h.accion for h in doc.historial[antes:]] == ['JEFE_ACEPTAR_IMPLICITO', 'JEFE_ASIGNA_TECNICO']
    assert doc.jefe_asignado_id == usuarios['jefe_financiera']
    assert doc.owner_dept == 'AREA FINANCIERA'

    motor.tecnico_iniciar(id_corr, actor('tecnico_fin'))
    motor.tecnico_resolver(id_corr, actor('tecnico_fin'))
    assert recargar(id_corr).owner_user_id == usuarios['jefe_financiera']

    motor.jefe_devolver_arriba(id_corr, actor('jefe_financiera'))
    doc = recargar(id_corr)
    assert doc.estado == E.EN_DIRECCION_REVISION_FINAL
    assert (doc.owner_dept, doc.owner_role, doc.owner_user_id) == ('DIRECCION', 'DIRECTOR', None)


def test_aceptacion_implicita_de_jefe_exige_propietario(motor, actor, usuarios, nuevo_expediente):
    id_corr = nuevo_expediente()
    motor.enviar_a_direccion(id_corr, actor('asistente'))
    motor.instruir_y_enviar(id_corr, actor('director'), 'JEFE', departamento='AREA FINANCIERA')

    with pytest.raises(Prohibido):
        motor.jefe_asignar_tecnico(id_corr, actor('jefe_primaria'), usuarios['tecnico_a'])
    doc = recargar(id_corr)
    assert doc.estado == E.EN_DEPARTAMENTO_POR_RECIBIR
    assert len(doc.historial) == 3


# --- Concurrencia y bitácora ---

def test_modificacion_concurrente(motor, actor, nuevo_expediente):
    id_corr = nuevo_expediente()
    doc = motor.obtener(id_corr)
    assert doc.version == 1

    # Otro proceso movió la fila entre la lectura y la escritura
    db.session.execute(text("UPDATE correspondencia SET version = version + 1 WHERE id = :id"), {'id': id_corr})

    with pytest.raises(ModificacionConcurrente) as exc:
        motor.enviar_a_direccion(id_corr, actor('asistente'))
    assert exc.value.status_code == 409

    doc = recargar(id_corr)
    assert doc.estado == E.EN_RECEPCION
    assert len(doc.historial) == 1


def test_cada_transicion_queda_en_bitacora(motor, actor, nuevo_expediente):
    id_corr = nuevo_expediente()
    motor.enviar_a_direccion(id_corr, actor('asistente'))

    registros = ActivityLog.query.filter_by(resource_id=str(id_corr)).order_by(ActivityLog.id).all()
    assert [r.action for r in registros] == ['CORR_CREATE', 'CORR_SENT_TO_DIR']
    ultimo = registros[-1]
    assert ultimo.category == 'CORRESPONDENCIA'
    assert ultimo.user_id == actor('asistente').id
    assert ultimo.changes['diff']['estado'] == {'from': 'EN_RECEPCION', 'to': 'EN_DIRECCION_POR_INSTRUIR'}
    assert 'correspondencia' in ultimo.tags


def test_falla_de_bitacora_no_rompe_la_transicion(app, catalogo, actor, nuevo_expediente):
    def auditar_roto(**kwargs):
        raise RuntimeError('bitácora caída')

    motor_roto = MotorCorrespondencia(catalogo, auditar=auditar_roto)
    id_corr = nuevo_expediente()
    doc = motor_roto.enviar_a_direccion(id_corr, actor('asistente'))

    assert doc.estado == E.EN_DIRECCION_POR_INSTRUIR
    assert recargar(id_corr).estado == E.EN_DIRECCION_POR_INSTRUIR
