# config.py
import os

# --- Configuración de la Base de Datos ---
DB_CONFIG = {
    'host': os.environ.get('DB_HOST', 'localhost'),
    'user': os.environ.get('DB_USER', 'root'),
    'password': os.environ.get('DB_PASSWORD', ''),
    'database': os.environ.get('DB_NAME', 'correspondencia')
}

SECRET_KEY = os.environ.get('SECRET_KEY', 'cambiar-en-produccion')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


def database_uri():
    """Arma la URI de SQLAlchemy a partir de DB_CONFIG (o DATABASE_URL si existe)."""
    url = os.environ.get('DATABASE_URL')
    if url:
        return url
    return (
        f"mysql+mysqlconnector://{DB_CONFIG['user']}:{DB_CONFIG['password']}"
        f"@{DB_CONFIG['host']}/{DB_CONFIG['database']}"
    )


# --- Catálogo de la organización ---
# OJO: el catálogo institucional usa "DESAROLLO" (una sola R); así se guarda.
DEPARTAMENTOS = [
    'DIRECCION',
    'AREA ADMINISTRATIVA',
    'AREA FINANCIERA',
    'AREA DE MATERIALES EDUCATIVOS',
    'SUBDIRECCION EVALUACION CURRICULAR',
    'SUBDIRECCION DISEÑO Y DESAROLLO CURRICULAR',
    'PRIMARIA',
    'EVALUACION',
    'DESAROLLO',
    'INICIAL Y PREPRIMARIA',
    'BASICO',
    'DIVERSIFICADO',
]

ROLES = [
    'ADMIN',
    'DESAROLLADOR',
    'DIRECTOR',
    'SUBDIRECTOR',
    'JEFE',
    'TECNICO',
    'ASISTENTE',
    'LECTOR',
]

# Roles exentos de la validación de propietario
SUPER_ROLES = ['ADMIN', 'DESAROLLADOR']

SUBDIRECCIONES = [
    'SUBDIRECCION EVALUACION CURRICULAR',
    'SUBDIRECCION DISEÑO Y DESAROLLO CURRICULAR',
]

# Departamentos que NO pasan por subdirección
DEPTS_SIN_SUBDIRECTOR = [
    'AREA FINANCIERA',
    'AREA DE MATERIALES EDUCATIVOS',
    'AREA ADMINISTRATIVA',
]

# Subdirección -> departamentos (jefaturas)
SUBDIR_MAP = {
    'SUBDIRECCION EVALUACION CURRICULAR': ['PRIMARIA', 'EVALUACION', 'DESAROLLO'],
    'SUBDIRECCION DISEÑO Y DESAROLLO CURRICULAR': [
        'INICIAL Y PREPRIMARIA',
        'BASICO',
        'DIVERSIFICADO',
    ],
}

# Respaldo por si SUBDIR_MAP se desalinea; se fusiona, no reemplaza.
SUBDIR_FALLBACK_MAP = {
    'SUBDIRECCION EVALUACION CURRICULAR': ['PRIMARIA', 'EVALUACION', 'DESAROLLO'],
    'SUBDIRECCION DISENO Y DESAROLLO CURRICULAR': [
        'INICIAL Y PREPRIMARIA',
        'BASICO',
        'DIVERSIFICADO',
    ],
}

# Variantes ortográficas por palabra (ya normalizadas)
ALIAS_NOMBRES = {
    'DESARROLLO': 'DESAROLLO',
}

ALIAS_ROLES = {
    'TENICO': 'TECNICO',
    'DESARROLLADOR': 'DESAROLLADOR',
}

DEPTO_RECEPCION = 'AREA ADMINISTRATIVA'
DEPTO_DIRECCION = 'DIRECCION'

CATALOGO_ORGANIZACION = {
    'departamentos': DEPARTAMENTOS,
    'roles': ROLES,
    'super_roles': SUPER_ROLES,
    'subdirecciones': SUBDIRECCIONES,
    'depts_sin_subdirector': DEPTS_SIN_SUBDIRECTOR,
    'subdir_map': SUBDIR_MAP,
    'subdir_fallback_map': SUBDIR_FALLBACK_MAP,
    'alias_nombres': ALIAS_NOMBRES,
    'alias_roles': ALIAS_ROLES,
    'depto_recepcion': DEPTO_RECEPCION,
    'depto_direccion': DEPTO_DIRECCION,
}

# --- Listas de acceso por ruta (departamento Y rol) ---
RECEPCION_DEPTS = ['AREA ADMINISTRATIVA', 'DESAROLLO']
RECEPCION_ROLES = ['ASISTENTE', 'DESAROLLADOR', 'ADMIN']

DIR_DEPTS = ['DIRECCION', 'DESAROLLO']
DIR_ROLES = ['DIRECTOR', 'DESAROLLADOR', 'ADMIN']

SUBDIR_DEPTS = SUBDIRECCIONES + ['DESAROLLO']
SUBDIR_ROLES = ['SUBDIRECTOR', 'DESAROLLADOR', 'ADMIN']

JEFE_ROLES = ['JEFE', 'DESAROLLADOR', 'ADMIN']
TEC_ROLES = ['TECNICO', 'DESAROLLADOR', 'ADMIN']

# Sólo la asistente del Área Administrativa
AA_DEPTS = ['AREA ADMINISTRATIVA']
AA_ROLES = ['ASISTENTE']

# --- Listado / paginación ---
LISTADO_LIMIT_DEFAULT = 20
LISTADO_LIMIT_MAX = 100
ACTIVITY_LOG_PER_PAGE = 50
