import os
from datetime import timedelta
from werkzeug.security import generate_password_hash


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me')
    USERNAME = os.environ.get('APP_USERNAME', 'admin')
    # default password is 'admin'
    PASSWORD_HASH = os.environ.get(
        'APP_PASSWORD_HASH',
        generate_password_hash('admin'),
    )
    PERMANENT_SESSION_LIFETIME = timedelta(hours=1)
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', SECRET_KEY)
    JWT_TOKEN_LOCATION = ['cookies']
    JWT_COOKIE_SECURE = True
    JWT_COOKIE_SAMESITE = 'Lax'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)
    JWT_COOKIE_CSRF_PROTECT = False
    # Login ban policy (security.ban_after / security.ban_duration)
    SECURITY_BAN_AFTER = int(os.environ.get('BAN_AFTER', '4'))
    SECURITY_BAN_DURATION = int(os.environ.get('BAN_DURATION', '1800'))
    # Comma separated; only these peers may set X-Forwarded-For
    SECURITY_TRUSTED_PROXIES = os.environ.get('TRUSTED_PROXIES', '')
    RESOURCE_BAN_FILE = os.environ.get('BAN_FILE') or os.path.join(
        os.environ.get('INSTANCE_PATH', os.path.join(os.getcwd(), 'instance')),
        'ipbans.json',
    )
    # 0 disables the expired-ban sweep
    BAN_PURGE_INTERVAL_MINUTES = int(os.environ.get('BAN_PURGE_INTERVAL_MINUTES', '60'))
