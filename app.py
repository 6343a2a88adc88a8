from flask import Flask, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError, ProgrammingError

import config
from catalogo import CatalogoOrganizacion
from decorators import actor_actual, catalogo
from excepciones import ErrorValidacion, NoAutenticado
from extensions import db, login_manager, migrate
from log_activity import log_activity
from models import Role, User
from motor_correspondencia import MotorCorrespondencia


# --- FÁBRICA DE LA APLICACIÓN ---

def create_app(test_config=None):
    app = Flask(__name__)

    # Configuración de la aplicación
    app.config.from_mapping(
        SECRET_KEY=config.SECRET_KEY,
        SQLALCHEMY_DATABASE_URI=config.database_uri(),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        LOG_LEVEL=config.LOG_LEVEL,
        CATALOGO_ORGANIZACION=config.CATALOGO_ORGANIZACION,
        LISTADO_LIMIT_DEFAULT=config.LISTADO_LIMIT_DEFAULT,
        LISTADO_LIMIT_MAX=config.LISTADO_LIMIT_MAX,
        ACTIVITY_LOG_PER_PAGE=config.ACTIVITY_LOG_PER_PAGE,
    )
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Inicializar extensiones
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Catálogo inmutable y motor, uno por app
    catalogo_org = CatalogoOrganizacion.desde_config(app.config['CATALOGO_ORGANIZACION'])
    app.extensions['catalogo_organizacion'] = catalogo_org
    app.extensions['motor_correspondencia'] = MotorCorrespondencia(catalogo_org)

    # --- REGISTRO DE BLUEPRINTS ---
    from routes.admin import admin_bp
    from routes.admin_users import admin_users_bp
    from routes.correspondencia import correspondencia_bp
    from routes.handle_errors import handle_errors_bp

    app.register_blueprint(handle_errors_bp)
    app.register_blueprint(correspondencia_bp)
    app.register_blueprint(admin_users_bp)
    app.register_blueprint(admin_bp)

    _registrar_rutas_auth(app)
    init_tables(app)

    return app


# --- LÓGICA DE INICIALIZACIÓN DE TABLAS ---

def init_tables(app):
    """
    Verifica si las tablas existen y las crea si es necesario.
    Asume que la base de datos ya ha sido creada manualmente.
    """
    with app.app_context():
        try:
            inspector = inspect(db.engine)
            if not inspector.get_table_names():
                app.logger.info("No se encontraron tablas, creando esquema completo...")
                db.create_all()
                app.logger.info("Tablas creadas exitosamente")
            else:
                app.logger.debug("Las tablas de la base de datos ya existen.")
        except (OperationalError, ProgrammingError) as e:
            app.logger.error(
                f"No se pudo conectar a la base de datos '{config.DB_CONFIG['database']}'. "
                f"Asegúrate de que exista y que las credenciales sean correctas. Detalle: {e}"
            )
            raise


# --- CONFIGURACIÓN DE FLASK-LOGIN ---

@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify(NoAutenticado().to_dict()), NoAutenticado.status_code


# --- RUTAS DE AUTENTICACIÓN Y CONFIGURACIÓN INICIAL ---

def _registrar_rutas_auth(app):

    @app.route('/setup', methods=['POST'])
    def setup():
        if User.query.count() > 0:
            raise ErrorValidacion('El sistema ya ha sido configurado. Por favor, inicie sesión.')

        data = request.get_json(silent=True) or {}
        email = str(data.get('email') or '').strip().lower()
        password = data.get('password')
        if not email or not password:
            raise ErrorValidacion('email y password son requeridos.')

        cat = catalogo()
        departamento = cat.canonico_departamento(data.get('departamento') or 'DESAROLLO')
        if not departamento:
            raise ErrorValidacion('Departamento inválido')

        # Todos los roles del catálogo quedan creados desde el inicio
        for nombre_rol in cat.roles:
            Role.obtener_o_crear(nombre_rol)
        admin_role = Role.obtener_o_crear('ADMIN')
        admin_role.description = 'Administrador del sistema'

        admin_user = User(
            email=email,
            nombre=str(data.get('nombre') or 'Administrador').strip(),
            departamento=departamento,
        )
        admin_user.set_password(password)
        admin_user.roles.append(admin_role)

        db.session.add(admin_user)
        db.session.commit()

        login_user(admin_user)
        log_activity(action='SETUP', category='Auth', details=f"Administrador inicial: {email}",
                     resource_id=admin_user.id)
        return jsonify({'success': True, 'message': 'Configuración completada', 'item': admin_user.to_dict()}), 201

    @app.route('/login', methods=['POST'])
    def login():
        data = request.get_json(silent=True) or request.form
        email = str(data.get('email') or '').strip().lower()
        password = data.get('password') or ''

        user = User.query.filter_by(email=email).first()
        if not user or not user.activo or not user.check_password(password):
            app.logger.info(f"[AUTH] Inicio de sesión fallido para {email}")
            raise NoAutenticado('Usuario o contraseña incorrectos.')

        login_user(user)
        log_activity(action='LOGIN', category='Auth', details=f"Inicio de sesión del usuario: {email}",
                     resource_id=user.id)
        return jsonify({'success': True, 'message': 'Inicio de sesión exitoso', 'item': user.to_dict()})

    @app.route('/logout', methods=['POST'])
    @login_required
    def logout():
        log_activity(action='LOGOUT', category='Auth',
                     details=f"Cierre de sesión del usuario: {current_user.email}",
                     resource_id=current_user.id)
        logout_user()
        return jsonify({'success': True, 'message': 'Sesión cerrada'})

    @app.route('/me')
    @login_required
    def me():
        actor = actor_actual()
        item = current_user.to_dict()
        item.update({
            'departamento': actor.departamento,
            'roles': list(actor.roles),
            'esSuper': actor.es_super,
        })
        return jsonify({'success': True, 'item': item})


# --- Bloque para ejecutar la aplicación en modo de desarrollo ---
if __name__ == '__main__':
    create_app().run(debug=True)
