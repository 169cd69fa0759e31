import sys
from pathlib import Path

# add project root to sys.path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
from banguard import create_app


TRUSTED_PROXY = '10.1.1.100'


@pytest.fixture
def ban_file(tmp_path):
    return tmp_path / 'ipbans.json'


@pytest.fixture
def make_app(ban_file):
    def _make_app(**overrides):
        config = {
            'TESTING': True,
            'WTF_CSRF_ENABLED': False,
            'RESOURCE_BAN_FILE': str(ban_file),
            'SECURITY_BAN_AFTER': 4,
            'SECURITY_BAN_DURATION': 3600,
            'SECURITY_TRUSTED_PROXIES': [TRUSTED_PROXY],
        }
        config.update(overrides)
        return create_app(config)
    return _make_app


@pytest.fixture
def client(make_app):
    app = make_app()
    with app.test_client() as client:
        yield client


@pytest.fixture
def login(client):
    def _login(username='admin', password='admin', **kwargs):
        return client.post(
            '/login',
            data={'username': username, 'password': password},
            follow_redirects=True,
            **kwargs,
        )
    return _login
