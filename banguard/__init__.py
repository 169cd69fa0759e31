from flask import Flask
from .auth.routes import auth_bp
from .extensions import jwt, init_scheduler
from .error_handlers import register_error_handlers
from .guard import BanGuard, BanState, GuardSettings


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object('banguard.config.Config')
    if config_overrides:
        app.config.update(config_overrides)

    # Security-related configs
    app.config.setdefault('SESSION_COOKIE_SECURE', True)
    app.config.setdefault('SESSION_COOKIE_HTTPONLY', True)
    app.config.setdefault('SESSION_COOKIE_SAMESITE', 'Lax')
    if app.config.get('TESTING'):
        app.config['JWT_COOKIE_SECURE'] = False

    jwt.init_app(app)

    # Ban state lives for the whole process and is reloaded from the ban file
    settings = GuardSettings.from_config(app.config)
    app.extensions['ban_guard'] = BanGuard(BanState(), settings)

    app.register_blueprint(auth_bp)

    register_error_handlers(app)

    if not app.config.get('TESTING'):
        from .tasks import schedule_tasks

        schedule_tasks(app)
        init_scheduler(app)

    if app.config.get('TESTING'):
        @app.route('/raise-validation-error')
        def raise_validation_error():
            from pydantic import BaseModel

            class Dummy(BaseModel):
                value: int

            Dummy(value='bad')

            return ''  # pragma: no cover

    return app
