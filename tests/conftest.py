"""Fixtures pytest: app con SQLite en memoria, usuarios por rol y sesión."""
import pytest

from app import create_app
from extensions import db
from models import Correspondencia, Role, User

PASSWORD = 'secreto-123'
URL_ARCHIVO = 'https://1drv.ms/w/s!AkLx8s9qTd2bgQ'

# clave -> (nombre, departamento, roles, activo)
USUARIOS = {
    'asistente': ('Ana Recepción', 'Área Administrativa', ['ASISTENTE'], True),
    'director': ('Diego Director', 'DIRECCION', ['DIRECTOR'], True),
    'subdir_eval': ('Sara Subdirectora', 'Subdirección Evaluación Curricular', ['SUBDIRECTOR'], True),
    'subdir_diseno': ('Saúl Subdirector', 'SUBDIRECCION DISENO Y DESARROLLO CURRICULAR', ['SUBDIRECTOR'], True),
    'jefe_primaria': ('Julia Jefa', 'Primaria', ['JEFE'], True),
    'jefe_basico': ('Jorge Jefe', 'BASICO', ['JEFE'], True),
    'jefe_financiera': ('Fernanda Jefa', 'AREA FINANCIERA', ['JEFE'], True),
    'jefe_inactivo': ('Iván Inactivo', 'PRIMARIA', ['JEFE'], False),
    'tecnico_a': ('Tomás Técnico', 'PRIMARIA', ['TECNICO'], True),
    'tecnico_b': ('Teresa Técnica', 'PRIMARIA', ['Tenico'], True),
    'tecnico_fin': ('Tadeo Técnico', 'AREA FINANCIERA', ['TECNICO'], True),
    'lector': ('Luis Lector', 'PRIMARIA', ['LECTOR'], True),
    'admin': ('Admin', 'Desarrollo', ['ADMIN'], True),
}


@pytest.fixture(scope="function")
def app():
    """App nueva por test, con la base en memoria."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'PASSWORD_HASH_METHOD': 'pbkdf2:sha256:1000',
        'LOG_LEVEL': 'DEBUG',
    })

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def usuarios(app):
    """Crea un usuario por clave de USUARIOS; devuelve {clave: id}."""
    ids = {}
    with app.app_context():
        for clave, (nombre, departamento, roles, activo) in USUARIOS.items():
            user = User(
                email=f"{clave}@correspondencia.test",
                nombre=nombre,
                departamento=departamento,
                activo=activo,
            )
            user.set_password(PASSWORD)
            user.roles = [Role.obtener_o_crear(r) for r in roles]
            db.session.add(user)
        db.session.commit()
        for user in User.query.all():
            ids[user.email.split('@')[0]] = user.id
    return ids


@pytest.fixture
def ctx(app):
    """Contexto de app para probar el motor sin pasar por HTTP."""
    with app.app_context():
        yield


@pytest.fixture
def motor(app):
    return app.extensions['motor_correspondencia']


@pytest.fixture
def catalogo(app):
    return app.extensions['catalogo_organizacion']


@pytest.fixture
def actor(ctx, catalogo, usuarios):
    def _actor(clave):
        return catalogo.actor_desde_usuario(db.session.get(User, usuarios[clave]))
    return _actor


@pytest.fixture
def nuevo_expediente(motor, actor):
    """Crea un expediente en EN_RECEPCION y devuelve su id."""
    def _nuevo(**datos):
        payload = {
            'regExpediente': 'EXP-001',
            'documentoRecibido': 'Oficio 12/2026',
            'enviadoPor': 'Ministerio',
            'foliosRecibidos': 3,
            'profesionales': ['Lic. Pérez'],
            'onedriveUrl': URL_ARCHIVO,
        }
        payload.update(datos)
        return motor.crear(actor('asistente'), payload).id
    return _nuevo


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client, usuarios):
    """Inicia sesión en el cliente de pruebas como el usuario indicado."""
    def _login(clave):
        with client.session_transaction() as sess:
            sess['_user_id'] = str(usuarios[clave])
            sess['_fresh'] = True
        return client
    return _login


def recargar(id_corr):
    db.session.expire_all()
    return db.session.get(Correspondencia, id_corr)
