import logging
from datetime import datetime, timezone

from flask import (
    Blueprint,
    render_template,
    redirect,
    url_for,
    flash,
    session,
    request,
    current_app,
)
from flask_jwt_extended import (
    create_access_token,
    set_access_cookies,
    unset_jwt_cookies,
    verify_jwt_in_request,
    get_jwt_identity,
)
from werkzeug.security import check_password_hash
from ..guard import get_guard
from .forms import LoginForm
from .models import LoginData


logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def _banned_response(form):
    guard = get_guard()
    ip = guard.resolve_client_ip(request.environ)
    expiry = guard.ban_expiry(ip)
    banned_until = None
    if expiry is not None:
        banned_until = datetime.fromtimestamp(expiry, tz=timezone.utc)
    return render_template('login.html', form=form, banned=True, banned_until=banned_until), 403


@auth_bp.route('/', methods=['GET'])
def index():
    try:
        verify_jwt_in_request()
    except Exception:
        return redirect(url_for('auth.login'))
    return render_template('home.html', username=get_jwt_identity())


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    form = LoginForm()
    guard = get_guard()
    # Banned clients never reach credential checking
    if not guard.can_login(request.environ):
        return _banned_response(form)
    if form.validate_on_submit():
        data = LoginData(username=form.username.data, password=form.password.data)
        ip = guard.resolve_client_ip(request.environ)
        if (
            data.username == current_app.config['USERNAME']
            and check_password_hash(current_app.config['PASSWORD_HASH'], data.password)
        ):
            guard.handle_successful_login(request.environ)
            session.permanent = True
            access_token = create_access_token(identity=data.username)
            resp = redirect(url_for('auth.index'))
            set_access_cookies(resp, access_token)
            logger.info('login success: username=%s; ip=%s', data.username, ip)
            flash('Logged in successfully.', 'success')
            return resp
        guard.handle_failed_login(request.environ)
        logger.info('login failed: username=%s; ip=%s', data.username, ip)
        if not guard.can_login(request.environ):
            return _banned_response(form)
        flash('Invalid credentials', 'danger')
    return render_template('login.html', form=form, banned=False)


@auth_bp.route('/logout')
def logout():
    resp = redirect(url_for('auth.login'))
    unset_jwt_cookies(resp)
    flash('Logged out', 'info')
    return resp
