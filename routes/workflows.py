# Este diccionario centraliza las reglas del flujo de correspondencia.
# Para cada operación define desde qué estados se permite, a qué estado(s)
# lleva, la acción que queda en el historial y la que va a la bitácora.
# La lógica que aplica estas reglas vive en motor_correspondencia.py.

from models import EstadoCorrespondencia as E

TRANSICIONES = {
    'crear': {
        'desde': (),
        'hacia': (E.EN_RECEPCION,),
        'accion': 'RECEPCION_CREATE',
        'auditoria': 'CORR_CREATE',
        'log': 'CREATE',
        'mensaje': 'Correspondencia creada',
        'texto_accion': 'Registrar ingreso',
    },
    'enviar_a_direccion': {
        'desde': (E.EN_RECEPCION,),
        'hacia': (E.EN_DIRECCION_POR_INSTRUIR,),
        'accion': 'RECEPCION->DIRECCION',
        'auditoria': 'CORR_SENT_TO_DIR',
        'log': 'RECEP->DIR',
        'mensaje': 'Enviado a Dirección',
        'error_estado': 'El expediente no está en Recepción',
        'texto_accion': 'Enviar a Dirección',
    },
    'enviar_a_direccion_area_administrativa': {
        'desde': (E.EN_RECEPCION,),
        'hacia': (E.EN_DIRECCION_POR_INSTRUIR,),
        'accion': 'AA_ASISTENTE_ENVIA_DIRECCION',
        'auditoria': 'CORR_AA_SENT_TO_DIR',
        'log': 'AA->DIR',
        'mensaje': 'Enviado a Dirección',
        'error_estado': 'El expediente no está en Recepción',
        'texto_accion': 'Enviar a Dirección (Área Administrativa)',
    },
    'instruir_y_enviar': {
        'desde': (E.EN_DIRECCION_POR_INSTRUIR, E.EN_DIRECCION_POR_REASIGNAR),
        'hacia': (E.EN_SUBDIRECCION_POR_RECIBIR, E.EN_DEPARTAMENTO_POR_RECIBIR),
        'accion': 'DIR_INSTRUYE_ENVIA',
        'auditoria': 'CORR_DIR_ROUTE',
        'log': 'DIR->DEST',
        'mensaje': 'Enviado',
        'error_estado': 'No está en etapa de Dirección',
        'texto_accion': 'Instruir y enviar',
    },
    'subdireccion_aceptar': {
        'desde': (E.EN_SUBDIRECCION_POR_RECIBIR,),
        'hacia': (E.RECIBIDO_EN_SUBDIRECCION,),
        'accion': 'SUBDIR_ACEPTAR',
        'accion_implicita': 'SUBDIR_ACEPTAR_IMPLICITO',
        'notas_implicitas': 'Auto-aceptado por Subdirección al asignar a Jefatura',
        'auditoria': 'CORR_SUBDIR_ACCEPT',
        'log': 'SUBDIR_ACCEPT',
        'mensaje': 'Recibido por Subdirección',
        'error_estado': 'No está pendiente en Subdirección',
        'texto_accion': 'Recibir',
    },
    'subdireccion_asignar_jefe': {
        'desde': (E.RECIBIDO_EN_SUBDIRECCION, E.EN_SUBDIRECCION_REVISION),
        'aceptacion_implicita': 'subdireccion_aceptar',
        'hacia': (E.EN_DEPARTAMENTO_POR_RECIBIR,),
        'accion': 'SUBDIR_ASIGNA_JEFE',
        'auditoria': 'CORR_SUBDIR_ASSIGN_JEFE',
        'log': 'SUBDIR->JEFE',
        'mensaje': 'Asignado a Jefatura',
        'error_estado': 'No está en etapa de Subdirección para asignar',
        'texto_accion': 'Asignar Jefe',
    },
    'jefe_aceptar': {
        'desde': (E.EN_DEPARTAMENTO_POR_RECIBIR,),
        'hacia': (E.RECIBIDO_EN_DEPARTAMENTO,),
        'accion': 'JEFE_ACEPTAR',
        'accion_implicita': 'JEFE_ACEPTAR_IMPLICITO',
        'notas_implicitas': 'Auto-aceptado por Jefatura al asignar técnico',
        'auditoria': 'CORR_JEFE_ACCEPT',
        'log': 'JEFE_ACCEPT',
        'mensaje': 'Recibido por Jefatura',
        'error_estado': 'No está pendiente en Jefatura',
        'texto_accion': 'Recibir',
    },
    'jefe_asignar_tecnico': {
        'desde': (E.RECIBIDO_EN_DEPARTAMENTO, E.RESUELTO_POR_TECNICO),
        'aceptacion_implicita': 'jefe_aceptar',
        'hacia': (E.ASIGNADO_A_TECNICO,),
        'accion': 'JEFE_ASIGNA_TECNICO',
        'auditoria': 'CORR_JEFE_ASSIGN_TEC',
        'log': 'JEFE->TEC',
        'mensaje': 'Asignado a Técnico',
        'error_estado': 'No está en etapa para asignar técnico',
        'texto_accion': 'Asignar Técnico',
    },
    'tecnico_iniciar': {
        'desde': (E.ASIGNADO_A_TECNICO,),
        'hacia': (E.EN_TRABAJO_TECNICO,),
        'accion': 'TEC_START',
        'auditoria': 'CORR_TEC_START',
        'log': 'TEC_START',
        'mensaje': 'En trabajo',
        'error_estado': 'No está asignado a técnico',
        'texto_accion': 'Iniciar trabajo',
    },
    'tecnico_resolver': {
        'desde': (E.EN_TRABAJO_TECNICO,),
        'hacia': (E.RESUELTO_POR_TECNICO,),
        'accion': 'TEC_RESUELVE',
        'auditoria': 'CORR_TEC_RESOLVE',
        'log': 'TEC->JEFE',
        'mensaje': 'Resuelto por técnico',
        'error_estado': 'No está en trabajo técnico',
        'texto_accion': 'Resolver',
    },
    'jefe_devolver_arriba': {
        'desde': (E.RESUELTO_POR_TECNICO,),
        'hacia': (E.EN_SUBDIRECCION_REVISION, E.EN_DIRECCION_REVISION_FINAL),
        'accion': 'JEFE_DEVUELVE_ARRIBA',
        'auditoria': 'CORR_JEFE_RETURN_UP',
        'log': 'JEFE->UP',
        'mensaje': 'Devuelto para revisión superior',
        'error_estado': 'No está resuelto por técnico',
        'texto_accion': 'Devolver para revisión',
    },
    'subdireccion_devolver_a_direccion': {
        'desde': (E.EN_SUBDIRECCION_REVISION,),
        'hacia': (E.EN_DIRECCION_REVISION_FINAL,),
        'accion': 'SUBDIR->DIR',
        'auditoria': 'CORR_SUBDIR_TO_DIR',
        'log': 'SUBDIR->DIR',
        'mensaje': 'Enviado a Dirección para cierre',
        'error_estado': 'No está en revisión de subdirección',
        'texto_accion': 'Enviar a Dirección',
    },
    'direccion_remitir_archivo': {
        'desde': (E.EN_DIRECCION_REVISION_FINAL,),
        'hacia': (E.EN_RECEPCION_PARA_ARCHIVO,),
        'accion': 'DIR->RECEP_ARCH',
        'auditoria': 'CORR_DIR_TO_ARCHIVE',
        'log': 'DIR->RECEP',
        'mensaje': 'Remitido a Recepción para archivar',
        'error_estado': 'No está en revisión final de Dirección',
        'texto_accion': 'Remitir a archivo',
    },
    'recepcion_archivar': {
        'desde': (E.EN_RECEPCION_PARA_ARCHIVO,),
        'hacia': (E.ARCHIVADO,),
        'accion': 'RECEP_ARCHIVAR',
        'auditoria': 'CORR_ARCHIVE',
        'log': 'ARCHIVO',
        'mensaje': 'Archivado',
        'error_estado': 'No está para archivo',
        'texto_accion': 'Archivar',
    },
}

# Recorrido completo, para mostrar la línea de tiempo del expediente.
TIMELINE = [
    E.EN_RECEPCION,
    E.EN_DIRECCION_POR_INSTRUIR,
    E.EN_SUBDIRECCION_POR_RECIBIR,
    E.RECIBIDO_EN_SUBDIRECCION,
    E.EN_DEPARTAMENTO_POR_RECIBIR,
    E.RECIBIDO_EN_DEPARTAMENTO,
    E.ASIGNADO_A_TECNICO,
    E.EN_TRABAJO_TECNICO,
    E.RESUELTO_POR_TECNICO,
    E.EN_SUBDIRECCION_REVISION,
    E.EN_DIRECCION_REVISION_FINAL,
    E.EN_RECEPCION_PARA_ARCHIVO,
    E.ARCHIVADO,
]

ESTADOS_TERMINALES = (E.ARCHIVADO,)

# Estados que cada bandeja muestra por defecto
ESTADOS_PENDIENTES_JEFE = (E.RECIBIDO_EN_DEPARTAMENTO, E.RESUELTO_POR_TECNICO)
ESTADOS_PENDIENTES_TECNICO = (E.ASIGNADO_A_TECNICO, E.EN_TRABAJO_TECNICO)


def operaciones_disponibles(estado):
    """Operaciones que el estado actual admite (sin evaluar permisos)."""
    disponibles = []
    for nombre, regla in TRANSICIONES.items():
        implicita = regla.get('aceptacion_implicita')
        desde = regla['desde']
        if implicita:
            desde = desde + TRANSICIONES[implicita]['desde']
        if estado in desde:
            disponibles.append({'operacion': nombre, 'texto_accion': regla['texto_accion']})
    return disponibles
