# =============================================================================
# CropGenesis Backend
# app.py - Application Factory & Entry Point
#
# Builds the Flask app: configuration, logging, extensions, the Gemini-backed
# AI service, blueprints, JSON error handling and CLI commands.
# =============================================================================

import os
import logging

import click
from flask import Flask, jsonify, send_from_directory
from werkzeug.exceptions import RequestEntityTooLarge

from config import config
from extensions import db, migrate, jwt, bcrypt, cors, limiter
from services import AIService, AIServiceError, create_gemini_client
from utils import debug_details, error_response

API_VERSION = '1.0.0'

# Status code -> message for framework-raised HTTP errors
HTTP_ERROR_MESSAGES = {
    401: 'Authentication required',
    403: 'You do not have permission to access this resource',
    404: 'API endpoint not found',
    405: 'The method is not allowed for this endpoint',
    429: 'Too many requests, please try again later.'
}


def create_app(config_name=None, ai_client=None):
    """
    Create a configured CropGenesis application.

    Args:
        config_name: 'development', 'testing' or 'production'; defaults to
                     the FLASK_ENV environment variable, then 'development'
        ai_client: Generative AI client to use instead of the one built
                   from configuration (anything with generate_content)

    Returns:
        Flask: The application

    Usage:
        app = create_app('testing', ai_client=FakeGeminiClient())
    """
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config['default']))

    setup_logging(app)
    init_extensions(app)
    init_ai_service(app, ai_client)
    register_blueprints(app)
    register_core_routes(app)
    register_error_handlers(app)
    register_jwt_callbacks(app)
    setup_database_handlers(app)
    register_commands(app)

    app.logger.info(f"CropGenesis API started in {config_name} mode")
    return app


def setup_logging(app):
    """Root logging at DEBUG in debug mode, INFO otherwise."""
    log_level = logging.DEBUG if app.config['DEBUG'] else logging.INFO

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    app.logger.setLevel(log_level)

    # httpx logs every request URL, which includes the API key
    logging.getLogger('httpx').setLevel(logging.WARNING)


def init_extensions(app):
    """Bind the extension instances from extensions.py to this app."""
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    bcrypt.init_app(app)
    cors.init_app(
        app,
        origins=app.config['CORS_ORIGINS'],
        supports_credentials=app.config['CORS_SUPPORTS_CREDENTIALS'],
        allow_headers=['Content-Type', 'Authorization'],
        methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS']
    )
    limiter.init_app(app)

    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    app.logger.debug(f"CORS origins: {app.config['CORS_ORIGINS']}")


def init_ai_service(app, ai_client=None):
    """
    Build the Gemini client and the AI service once per app.

    The service is stored in app.extensions['ai_service'] for routes.
    """
    if ai_client is None:
        ai_client = create_gemini_client(
            app.config.get('GEMINI_API_KEY'),
            app.config['GEMINI_MODEL'],
            app.config['GEMINI_API_BASE_URL'],
            timeout=app.config['AI_REQUEST_TIMEOUT']
        )

    service = AIService.from_config(ai_client, app.config)
    app.extensions['ai_service'] = service

    if service.is_configured:
        app.logger.info(f"AI service ready: {ai_client!r}")
    else:
        app.logger.warning("GEMINI_API_KEY not set - AI endpoints will return 503")


def register_blueprints(app):
    """Mount the feature blueprints under /api."""
    from routes import auth_bp, cropplan_bp, diagnosis_bp, history_bp

    for blueprint, prefix in (
        (auth_bp, '/api/auth'),
        (cropplan_bp, '/api/cropplan'),
        (diagnosis_bp, '/api/diagnosis'),
        (history_bp, '/api/history'),
    ):
        app.register_blueprint(blueprint, url_prefix=prefix)


def register_core_routes(app):
    """Health check, API info and stored upload serving."""

    @app.route('/health', methods=['GET'])
    @limiter.exempt
    def health_check():
        """
        Liveness check for load balancers and the SPA.

        Returns:
            200: Database reachable
            503: Database unreachable
        """
        try:
            db.session.execute(db.text('SELECT 1'))
            database = 'connected'
        except Exception as e:
            app.logger.error(f"Database health check failed: {e}")
            db.session.rollback()
            database = 'error'

        healthy = database == 'connected'
        return jsonify({
            'success': healthy,
            'status': 'healthy' if healthy else 'degraded',
            'message': 'CropGenesis API is running',
            'version': API_VERSION,
            'database': database,
            'ai_configured': app.extensions['ai_service'].is_configured
        }), 200 if healthy else 503

    @app.route('/', methods=['GET'])
    def index():
        return jsonify({
            'name': 'CropGenesis API',
            'description': 'AI crop planning and plant disease diagnosis for farmers',
            'version': API_VERSION,
            'health': '/health'
        })

    @app.route('/uploads/<path:filename>', methods=['GET'])
    def uploaded_file(filename):
        """Serve a stored diagnosis image or video."""
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)


def register_error_handlers(app):
    """
    Turn every error into the {success: false, message} envelope.

    AI failures become 503 with a user-facing message; details of AI and
    unexpected errors are only included in debug mode.
    """

    @app.errorhandler(AIServiceError)
    def ai_service_error(error):
        app.logger.error(f"AI service error: {error!r}")
        return error_response(error.user_message, details=debug_details(error), status_code=503)

    @app.errorhandler(400)
    def bad_request(error):
        return error_response(getattr(error, 'description', None) or 'Invalid request')

    def make_handler(status_code, message):
        def handler(error):
            return error_response(message, status_code=status_code)
        return handler

    for status_code, message in HTTP_ERROR_MESSAGES.items():
        app.register_error_handler(status_code, make_handler(status_code, message))

    @app.errorhandler(RequestEntityTooLarge)
    def request_entity_too_large(error):
        # Same 400 the upload validator gives for an oversized file
        max_mb = app.config['MAX_UPLOAD_SIZE_MB']
        return error_response(f'File too large. Maximum size is {max_mb:g}MB.')

    @app.errorhandler(500)
    def internal_server_error(error):
        db.session.rollback()
        original = getattr(error, 'original_exception', None) or error
        app.logger.error(f"Unhandled error: {original!r}")
        return error_response(
            'An unexpected error occurred. Please try again later.',
            details=debug_details(original),
            status_code=500
        )


def register_jwt_callbacks(app):
    """
    Load the user behind a token and shape JWT failures as 401 JSON.

    The token identity is the user id; routes read the loaded user
    through flask_jwt_extended.current_user.
    """
    from models import User

    @jwt.user_lookup_loader
    def load_user(jwt_header, jwt_data):
        try:
            return db.session.get(User, int(jwt_data['sub']))
        except (TypeError, ValueError):
            return None

    @jwt.user_lookup_error_loader
    def unknown_user(jwt_header, jwt_data):
        return error_response('User not found. Please login again.', status_code=401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response('Your session has expired. Please login again.', status_code=401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response('Invalid token', status_code=401)

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response('Access token required', status_code=401)


def setup_database_handlers(app):
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        if exception:
            db.session.rollback()
        db.session.remove()


def register_commands(app):
    """Flask CLI commands (flask --app app init-db)."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first.')
    def init_db_command(drop):
        """Create all database tables."""
        if drop:
            db.drop_all()
            click.echo('Dropped existing tables')
        db.create_all()
        click.echo('Database tables created')


if __name__ == '__main__':
    app = create_app()
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=app.config['DEBUG']
    )
