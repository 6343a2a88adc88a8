# motor_correspondencia.py
"""
Motor del flujo de correspondencia.

Cada operación sigue el mismo orden: actor presente -> expediente existe ->
estado permitido -> propietario (cuando aplica) -> parámetros -> cambios en
memoria -> un solo commit -> log + bitácora. Nada se escribe antes de que
todas las validaciones pasen.

El commit usa la columna `version` de Correspondencia: si otro usuario movió
el expediente entre la lectura y la escritura, SQLAlchemy no encuentra la
fila y se responde ModificacionConcurrente sin tocar nada.
"""
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import String, func, or_
from sqlalchemy.orm.exc import StaleDataError

from excepciones import (ErrorValidacion, EstadoInvalido, ModificacionConcurrente,
                         NoAutenticado, NoEncontrado, Prohibido)
from extensions import db
from helpers import es_url_archivo_onedrive, normalizar_nombre, parse_bool
from log_activity import log_activity
from models import (Correspondencia, Destino, EstadoCorrespondencia as E,
                    HistorialCorrespondencia, User, ahora)
from routes.workflows import (ESTADOS_PENDIENTES_JEFE, ESTADOS_PENDIENTES_TECNICO,
                              TRANSICIONES)

ROL_DIRECTOR = 'DIRECTOR'
ROL_SUBDIRECTOR = 'SUBDIRECTOR'
ROL_JEFE = 'JEFE'
ROL_TECNICO = 'TECNICO'
ROL_ASISTENTE = 'ASISTENTE'

ENTIDAD = 'CORRESPONDENCIA'

CAMPOS_ORDEN = {
    'createdAt': Correspondencia.created_at,
    'updatedAt': Correspondencia.updated_at,
    'estado': Correspondencia.estado,
    'regExpediente': Correspondencia.reg_expediente,
}


class MotorCorrespondencia:

    def __init__(self, catalogo, auditar=log_activity):
        self.catalogo = catalogo
        self._auditar = auditar

    # ------------------------------------------------------------------
    # Lecturas
    # ------------------------------------------------------------------

    def obtener(self, id_corr):
        try:
            id_corr = int(id_corr)
        except (TypeError, ValueError):
            raise ErrorValidacion('ID inválido')
        doc = db.session.get(Correspondencia, id_corr)
        if not doc:
            raise NoEncontrado('No encontrado')
        return doc

    def listar(self, actor, args):
        """Bandeja: filtros explícitos + restricciones implícitas según el rol."""
        self._exigir_actor(actor)

        try:
            page = max(int(args.get('page') or 1), 1)
        except ValueError:
            page = 1
        try:
            limit = int(args.get('limit') or current_app.config['LISTADO_LIMIT_DEFAULT'])
        except ValueError:
            limit = current_app.config['LISTADO_LIMIT_DEFAULT']
        limit = min(max(limit, 1), current_app.config['LISTADO_LIMIT_MAX'])

        condiciones = self.construir_filtros(actor, args)
        query = Correspondencia.query.filter(*condiciones)

        total = query.count()
        items = (
            query.order_by(*self._orden(args.get('sort')))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            'items': items,
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': max((total + limit - 1) // limit, 1),
            },
        }

    def construir_filtros(self, actor, args):
        condiciones = []

        q = str(args.get('q') or '').strip()
        if q:
            termino = q.lower()
            campos = [
                Correspondencia.reg_expediente,
                Correspondencia.documento_recibido,
                Correspondencia.enviado_por,
                Correspondencia.observaciones,
            ]
            condiciones.append(or_(
                *[func.lower(campo, type_=String).contains(termino, autoescape=True) for campo in campos],
                Correspondencia.profesionales_texto.contains(normalizar_nombre(q), autoescape=True),
            ))

        owner_dept = str(args.get('ownerDept') or args.get('department') or '').strip()
        owner_role = str(args.get('ownerRole') or '').strip()
        owner_user_id = _entero(args.get('ownerUserId'))
        created_by = _entero(args.get('createdBy'))

        if owner_dept:
            owner_dept = self.catalogo.canonico_departamento(owner_dept) or owner_dept
        if owner_role:
            owner_role = self.catalogo.canonico_rol(owner_role) or owner_role

        if created_by is not None:
            condiciones.append(Correspondencia.created_by == created_by)

        condiciones.extend(self._rango_fechas(args))

        estados = self._estados_solicitados(args.get('estado'))
        any_state = parse_bool(args.get('anyState'))

        # --- Restricciones por rol ---
        estados_implicitos = None
        if not actor.es_super:
            if actor.tiene_rol(ROL_ASISTENTE):
                pass  # Recepción ve todo
            elif actor.tiene_rol(ROL_DIRECTOR):
                owner_dept = owner_dept or self.catalogo.depto_direccion
            elif actor.tiene_rol(ROL_JEFE):
                owner_dept = owner_dept or actor.departamento
                owner_role = owner_role or ROL_JEFE
                estados_implicitos = ESTADOS_PENDIENTES_JEFE
            elif actor.tiene_rol(ROL_TECNICO):
                owner_role = owner_role or ROL_TECNICO
                owner_user_id = actor.id
                estados_implicitos = ESTADOS_PENDIENTES_TECNICO

        if owner_dept:
            condiciones.append(Correspondencia.owner_dept == owner_dept)
        if owner_role:
            condiciones.append(Correspondencia.owner_role == owner_role)
        if owner_user_id is not None:
            condiciones.append(Correspondencia.owner_user_id == owner_user_id)

        if estados:
            condiciones.append(Correspondencia.estado.in_(estados))
        elif estados_implicitos and not any_state:
            condiciones.append(Correspondencia.estado.in_(estados_implicitos))

        return condiciones

    def _estados_solicitados(self, valor):
        partes = [p.strip().upper() for p in str(valor or '').split(',') if p.strip()]
        estados = []
        for parte in partes:
            try:
                estados.append(E(parte))
            except ValueError:
                raise ErrorValidacion(f"Estado desconocido: {parte}")
        return estados

    def _rango_fechas(self, args):
        campo = Correspondencia.created_at if args.get('dateField') == 'createdAt' else Correspondencia.updated_at
        condiciones = []
        desde = _fecha(args.get('dateFrom'))
        if desde:
            condiciones.append(campo >= desde)
        hasta_raw = str(args.get('dateTo') or '').strip()
        hasta = _fecha(hasta_raw)
        if hasta:
            # Fecha sin hora: incluir todo el día
            if len(hasta_raw) == 10:
                condiciones.append(campo < hasta + timedelta(days=1))
            else:
                condiciones.append(campo <= hasta)
        return condiciones

    def _orden(self, sort):
        sort = str(sort or '-updatedAt').strip()
        descendente = sort.startswith('-')
        columna = CAMPOS_ORDEN.get(sort.lstrip('-+'))
        if columna is None:
            columna, descendente = Correspondencia.updated_at, True
        principal = columna.desc() if descendente else columna.asc()
        return [principal, Correspondencia.id.desc()]

    # ------------------------------------------------------------------
    # Alta
    # ------------------------------------------------------------------

    def crear(self, actor, datos):
        actor = self._exigir_actor(actor)
        regla = TRANSICIONES['crear']

        onedrive_url = str(datos.get('onedriveUrl') or '').strip()
        if not onedrive_url or not es_url_archivo_onedrive(onedrive_url):
            raise ErrorValidacion('onedriveUrl inválida (debe ser un archivo, no una carpeta).')

        folios = datos.get('foliosRecibidos')
        if folios in (None, ''):
            folios = 0
        try:
            folios = int(folios)
        except (TypeError, ValueError):
            raise ErrorValidacion('foliosRecibidos debe ser un número entero.')
        if folios < 0:
            raise ErrorValidacion('foliosRecibidos no puede ser negativo.')

        profesionales = datos.get('profesionales')
        if isinstance(profesionales, (list, tuple)):
            profesionales = [str(p).strip() for p in profesionales if str(p).strip()]
        else:
            profesionales = []

        confirmacion = datos.get('confirmacion')
        if not isinstance(confirmacion, bool):
            confirmacion = parse_bool(confirmacion)

        doc = Correspondencia(
            reg_expediente=_texto(datos.get('regExpediente')),
            confirmacion=confirmacion,
            movimiento='ENVIADO' if datos.get('movimiento') == 'ENVIADO' else 'RECIBIDO',
            documento_recibido=_texto(datos.get('documentoRecibido')),
            enviado_por=_texto(datos.get('enviadoPor')),
            folios_recibidos=folios,
            observaciones=_texto(datos.get('observaciones')),
            onedrive_url=onedrive_url,
            estado=E.EN_RECEPCION,
            created_by=actor.id,
        )
        doc.destino = Destino.ninguno()
        doc.fijar_profesionales(profesionales)
        doc.asignar_propietario(self.catalogo.depto_recepcion, ROL_ASISTENTE)
        self._anotar(doc, regla['accion'], None, actor, 'Ingreso en recepción')
        db.session.add(doc)

        return self._confirmar(doc, 'crear', None, actor, antes=None)

    # ------------------------------------------------------------------
    # Transiciones
    # ------------------------------------------------------------------

    def enviar_a_direccion(self, id_corr, actor, notas=None):
        actor = self._exigir_actor(actor)
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, 'enviar_a_direccion')

        antes, origen = self._foto(doc)
        doc.estado = E.EN_DIRECCION_POR_INSTRUIR
        doc.asignar_propietario(self.catalogo.depto_direccion, ROL_DIRECTOR)
        self._anotar(doc, TRANSICIONES['enviar_a_direccion']['accion'], origen, actor,
                     notas or 'Envío a Dirección para instrucciones')
        return self._confirmar(doc, 'enviar_a_direccion', origen, actor, antes)

    def enviar_a_direccion_area_administrativa(self, id_corr, actor, notas=None):
        """Variante restringida: sólo la Asistente del Área Administrativa."""
        actor = self._exigir_actor(actor)
        if not (actor.tiene_rol(ROL_ASISTENTE)
                and self.catalogo.mismo_nombre(actor.departamento, self.catalogo.depto_recepcion)):
            raise Prohibido('Sólo la Asistente del Área Administrativa puede realizar esta acción')

        operacion = 'enviar_a_direccion_area_administrativa'
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, operacion)

        antes, origen = self._foto(doc)
        doc.estado = E.EN_DIRECCION_POR_INSTRUIR
        doc.asignar_propietario(self.catalogo.depto_direccion, ROL_DIRECTOR)
        doc.recepcion_envio_direccion_at = ahora()
        doc.recepcion_envio_direccion_por_id = actor.id
        self._anotar(doc, TRANSICIONES[operacion]['accion'], origen, actor,
                     notas or 'Asignado desde Recepción (Área Administrativa) hacia Dirección para instrucción')
        return self._confirmar(doc, operacion, origen, actor, antes,
                               tags=['recepcion', 'aa-only'])

    def instruir_y_enviar(self, id_corr, actor, role_destino, subdireccion=None,
                          departamento=None, instrucciones=None):
        actor = self._exigir_actor(actor)
        operacion = 'instruir_y_enviar'
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, operacion)

        rol = self.catalogo.canonico_rol(role_destino)
        if rol == ROL_SUBDIRECTOR:
            canonico = self.catalogo.canonico_subdireccion(subdireccion)
            if not canonico:
                raise ErrorValidacion('Subdirección inválida')
            destino = Destino.subdireccion(canonico)
            nuevo_estado = E.EN_SUBDIRECCION_POR_RECIBIR
        elif rol == ROL_JEFE:
            canonico = self.catalogo.canonico_departamento(departamento)
            if not canonico or not self.catalogo.departamento_enrutable(canonico):
                raise ErrorValidacion('Departamento inválido')
            destino = Destino.departamento(canonico)
            nuevo_estado = E.EN_DEPARTAMENTO_POR_RECIBIR
        else:
            raise ErrorValidacion('roleDestino inválido (SUBDIRECTOR|JEFE)')

        antes, origen = self._foto(doc)
        doc.instrucciones_direccion = str(instrucciones or '').strip()
        doc.destino = destino
        doc.estado = nuevo_estado
        doc.asignar_propietario(destino.nombre, rol)
        self._anotar(doc, TRANSICIONES[operacion]['accion'], origen, actor, f"Destino: {destino.nombre}")
        return self._confirmar(doc, operacion, origen, actor, antes,
                               mensaje=f"Dirección envía a {rol}")

    def subdireccion_aceptar(self, id_corr, actor):
        actor = self._exigir_actor(actor)
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, 'subdireccion_aceptar')

        antes, origen = self._foto(doc)
        self._aplicar_aceptacion(doc, 'subdireccion_aceptar', actor)
        return self._confirmar(doc, 'subdireccion_aceptar', origen, actor, antes)

    def subdireccion_asignar_jefe(self, id_corr, actor, jefe_ref):
        actor = self._exigir_actor(actor)
        operacion = 'subdireccion_asignar_jefe'
        doc = self.obtener(id_corr)

        implicita = actor.tiene_rol(ROL_SUBDIRECTOR)
        self._exigir_estado(doc, operacion, con_aceptacion_implicita=implicita)
        self._exigir_propietario(doc, actor, 'No autorizado para asignar jefe en este expediente')
        jefe = self._resolver_usuario(jefe_ref, ROL_JEFE, 'Jefe', 'jefeUserId')

        # El departamento sale SIEMPRE del registro del jefe.
        depto_jefe = self.catalogo.canonico_departamento(jefe.departamento) or jefe.departamento

        antes, origen = self._foto(doc)
        self._aceptar_si_pendiente(doc, operacion, actor)

        desde = doc.estado
        doc.estado = E.EN_DEPARTAMENTO_POR_RECIBIR
        doc.asignar_propietario(depto_jefe, ROL_JEFE, jefe.id)
        doc.jefe_asignado_id = jefe.id
        doc.jefe_asignado_label = jefe.etiqueta
        self._anotar(doc, TRANSICIONES[operacion]['accion'], desde, actor,
                     f"Dept (auto): {depto_jefe}; Jefe: {doc.jefe_asignado_label}")
        return self._confirmar(doc, operacion, origen, actor, antes)

    def jefe_aceptar(self, id_corr, actor):
        actor = self._exigir_actor(actor)
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, 'jefe_aceptar')

        antes, origen = self._foto(doc)
        self._aplicar_aceptacion(doc, 'jefe_aceptar', actor)
        return self._confirmar(doc, 'jefe_aceptar', origen, actor, antes)

    def jefe_asignar_tecnico(self, id_corr, actor, tecnico_ref):
        actor = self._exigir_actor(actor)
        operacion = 'jefe_asignar_tecnico'
        doc = self.obtener(id_corr)

        implicita = actor.tiene_rol(ROL_JEFE)
        self._exigir_estado(doc, operacion, con_aceptacion_implicita=implicita)
        self._exigir_propietario(doc, actor, 'No autorizado para asignar técnico en este expediente')
        tecnico = self._resolver_usuario(tecnico_ref, ROL_TECNICO, 'Técnico', 'tecnicoUserId')

        antes, origen = self._foto(doc)
        self._aceptar_si_pendiente(doc, operacion, actor)

        # Si nadie asignó jefe (envío directo de Dirección), queda quien asigna.
        if doc.jefe_asignado_id is None and actor.tiene_rol(ROL_JEFE):
            doc.jefe_asignado_id = actor.id
            doc.jefe_asignado_label = actor.nombre or actor.email

        desde = doc.estado
        doc.estado = E.ASIGNADO_A_TECNICO
        # ownerDept se mantiene; la persona pasa a ser el técnico
        doc.asignar_propietario(doc.owner_dept, ROL_TECNICO, tecnico.id)
        doc.tecnico_asignado_id = tecnico.id
        doc.tecnico_asignado_label = tecnico.etiqueta
        self._anotar(doc, TRANSICIONES[operacion]['accion'], desde, actor,
                     f"Técnico: {doc.tecnico_asignado_label}")
        return self._confirmar(doc, operacion, origen, actor, antes)

    def tecnico_iniciar(self, id_corr, actor):
        actor = self._exigir_actor(actor)
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, 'tecnico_iniciar')
        self._exigir_propietario(doc, actor, 'Sólo el técnico asignado puede iniciar el trabajo')

        antes, origen = self._foto(doc)
        doc.estado = E.EN_TRABAJO_TECNICO
        self._anotar(doc, TRANSICIONES['tecnico_iniciar']['accion'], origen, actor)
        return self._confirmar(doc, 'tecnico_iniciar', origen, actor, antes)

    def tecnico_resolver(self, id_corr, actor, notas=None):
        actor = self._exigir_actor(actor)
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, 'tecnico_resolver')
        self._exigir_propietario(doc, actor, 'Sólo el técnico asignado puede resolver')

        antes, origen = self._foto(doc)
        doc.estado = E.RESUELTO_POR_TECNICO
        # Vuelve a Jefatura para revisión
        doc.asignar_propietario(doc.owner_dept, ROL_JEFE, doc.jefe_asignado_id)
        self._anotar(doc, TRANSICIONES['tecnico_resolver']['accion'], origen, actor, notas)
        return self._confirmar(doc, 'tecnico_resolver', origen, actor, antes)

    def jefe_devolver_arriba(self, id_corr, actor, notas=None):
        actor = self._exigir_actor(actor)
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, 'jefe_devolver_arriba')
        self._exigir_propietario(doc, actor, 'Sólo la Jefatura a cargo puede devolver el expediente')

        antes, origen = self._foto(doc)
        destino = doc.destino
        if destino.es_subdireccion and destino.nombre:
            doc.estado = E.EN_SUBDIRECCION_REVISION
            doc.asignar_propietario(destino.nombre, ROL_SUBDIRECTOR)
        else:
            doc.estado = E.EN_DIRECCION_REVISION_FINAL
            doc.asignar_propietario(self.catalogo.depto_direccion, ROL_DIRECTOR)
        self._anotar(doc, TRANSICIONES['jefe_devolver_arriba']['accion'], origen, actor, notas)
        return self._confirmar(doc, 'jefe_devolver_arriba', origen, actor, antes)

    def subdireccion_devolver_a_direccion(self, id_corr, actor, notas=None):
        actor = self._exigir_actor(actor)
        operacion = 'subdireccion_devolver_a_direccion'
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, operacion)

        antes, origen = self._foto(doc)
        doc.estado = E.EN_DIRECCION_REVISION_FINAL
        doc.asignar_propietario(self.catalogo.depto_direccion, ROL_DIRECTOR)
        self._anotar(doc, TRANSICIONES[operacion]['accion'], origen, actor, notas)
        return self._confirmar(doc, operacion, origen, actor, antes)

    def direccion_remitir_archivo(self, id_corr, actor, notas=None):
        actor = self._exigir_actor(actor)
        operacion = 'direccion_remitir_archivo'
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, operacion)

        antes, origen = self._foto(doc)
        doc.estado = E.EN_RECEPCION_PARA_ARCHIVO
        doc.asignar_propietario(self.catalogo.depto_recepcion, ROL_ASISTENTE)
        self._anotar(doc, TRANSICIONES[operacion]['accion'], origen, actor, notas)
        return self._confirmar(doc, operacion, origen, actor, antes)

    def recepcion_archivar(self, id_corr, actor, notas=None):
        actor = self._exigir_actor(actor)
        doc = self.obtener(id_corr)
        self._exigir_estado(doc, 'recepcion_archivar')

        antes, origen = self._foto(doc)
        doc.estado = E.ARCHIVADO
        doc.owner_role = ROL_ASISTENTE
        self._anotar(doc, TRANSICIONES['recepcion_archivar']['accion'], origen, actor, notas)
        return self._confirmar(doc, 'recepcion_archivar', origen, actor, antes)

    # ------------------------------------------------------------------
    # Aceptación (explícita o implícita)
    # ------------------------------------------------------------------

    def _aplicar_aceptacion(self, doc, operacion_aceptar, actor, implicita=False):
        regla = TRANSICIONES[operacion_aceptar]
        origen = doc.estado
        doc.estado = regla['hacia'][0]
        doc.owner_role = ROL_SUBDIRECTOR if operacion_aceptar == 'subdireccion_aceptar' else ROL_JEFE
        if implicita:
            self._anotar(doc, regla['accion_implicita'], origen, actor, regla['notas_implicitas'])
        else:
            self._anotar(doc, regla['accion'], origen, actor)

    def _aceptar_si_pendiente(self, doc, operacion, actor):
        """
        Primer paso de las asignaciones: si el expediente sigue "por recibir",
        se recibe en nombre de quien asigna y queda su propio renglón en el
        historial. El segundo paso (la asignación) va en el mismo commit.
        """
        aceptar = TRANSICIONES[operacion]['aceptacion_implicita']
        if doc.estado in TRANSICIONES[aceptar]['desde']:
            self._aplicar_aceptacion(doc, aceptar, actor, implicita=True)
            return True
        return False

    # ------------------------------------------------------------------
    # Guardas
    # ------------------------------------------------------------------

    def _exigir_actor(self, actor):
        if actor is None:
            raise NoAutenticado()
        return actor

    def _exigir_estado(self, doc, operacion, con_aceptacion_implicita=False):
        regla = TRANSICIONES[operacion]
        permitidos = regla['desde']
        if con_aceptacion_implicita and regla.get('aceptacion_implicita'):
            permitidos = permitidos + TRANSICIONES[regla['aceptacion_implicita']]['desde']
        if doc.estado not in permitidos:
            raise EstadoInvalido(regla.get('error_estado'), estado=doc.estado.value)

    def es_propietario(self, doc, actor):
        """
        Super-rol, o el usuario dueño, o (si el dueño es a nivel de rol)
        alguien con ese rol dentro del departamento dueño.
        """
        if actor.es_super:
            return True
        if doc.owner_user_id is not None:
            return doc.owner_user_id == actor.id
        return (actor.tiene_rol(doc.owner_role)
                and self.catalogo.mismo_nombre(actor.departamento, doc.owner_dept))

    def _exigir_propietario(self, doc, actor, mensaje):
        if not self.es_propietario(doc, actor):
            raise Prohibido(mensaje)

    def _resolver_usuario(self, referencia, rol, etiqueta, campo):
        raw = str(referencia or '').strip()
        if not raw:
            raise ErrorValidacion(f"{campo} es requerido")

        usuario = None
        if raw.isdigit():
            usuario = db.session.get(User, int(raw))
        elif '@' in raw:
            usuario = User.query.filter(func.lower(User.email) == raw.lower()).first()

        if not usuario or not usuario.activo:
            raise NoEncontrado(f"{etiqueta} no encontrado")
        if rol not in self.catalogo.canonico_roles(usuario.nombres_roles):
            raise ErrorValidacion(f"El usuario indicado no tiene el rol {rol}")
        return usuario

    # ------------------------------------------------------------------
    # Historial, commit y bitácora
    # ------------------------------------------------------------------

    def _foto(self, doc):
        return doc.to_dict(con_historial=False), doc.estado

    def _anotar(self, doc, accion, origen, actor, notas=None):
        # Cargar el historial no debe vaciar la sesión: el único flush es el commit
        with db.session.no_autoflush:
            doc.historial.append(HistorialCorrespondencia(
                orden=len(doc.historial) + 1,
                fecha=ahora(),
                accion=accion,
                estado_origen=origen.value if origen else None,
                estado_destino=doc.estado.value,
                notas=str(notas or '').strip(),
                actor_user_id=actor.id,
                actor_dept=actor.departamento,
                actor_role=actor.rol_principal,
            ))

    def _confirmar(self, doc, operacion, origen, actor, antes, mensaje=None, tags=None):
        regla = TRANSICIONES[operacion]
        id_doc = doc.id
        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            current_app.logger.warning(f"[CORR:{regla['log']}] #{id_doc} modificado concurrentemente")
            raise ModificacionConcurrente()
        except Exception:
            db.session.rollback()
            raise

        desde = origen.value if origen else '∅'
        current_app.logger.info(
            f"[CORR:{regla['log']}] #{doc.id} {desde} -> {doc.estado.value} by {actor.etiqueta}"
        )

        try:
            self._auditar(
                action=regla['auditoria'],
                category=ENTIDAD,
                details=mensaje or regla['mensaje'],
                resource_id=doc.id,
                before=antes,
                after=doc.to_dict(con_historial=False),
                actor=actor,
                tags=['correspondencia'] + list(tags or []),
            )
        except Exception:
            current_app.logger.exception(f"[AUDIT] Falló la bitácora de #{doc.id} ({regla['auditoria']})")
        return doc


def _texto(valor):
    if valor is None:
        return None
    valor = str(valor).strip()
    return valor or None


def _entero(valor):
    try:
        return int(str(valor).strip())
    except (TypeError, ValueError):
        return None


def _fecha(valor):
    valor = str(valor or '').strip()
    if not valor:
        return None
    try:
        fecha = datetime.fromisoformat(valor.replace('Z', '+00:00'))
    except ValueError:
        return None
    if fecha.tzinfo is not None:
        # Las fechas se guardan en UTC sin zona
        fecha = fecha.astimezone(timezone.utc).replace(tzinfo=None)
    return fecha
