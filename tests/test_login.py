import logging

import pytest

TRUSTED_PROXY = '10.1.1.100'


def _guard(client):
    return client.application.extensions['ban_guard']


def test_login_success(client, login):
    resp = login()
    assert b'Signed in as admin' in resp.data
    assert client.get_cookie('access_token_cookie') is not None


def test_login_failure(client, login):
    resp = login(password='wrong')
    assert resp.status_code == 200
    assert b'Invalid credentials' in resp.data
    assert _guard(client).failure_count('127.0.0.1') == 1


def test_index_requires_login(client):
    resp = client.get('/', follow_redirects=True)
    assert b'Login' in resp.data
    assert b'Signed in as' not in resp.data


def test_logout(client, login):
    login()
    resp = client.get('/logout', follow_redirects=True)
    assert b'Logged out' in resp.data
    resp = client.get('/', follow_redirects=True)
    assert b'Signed in as' not in resp.data


def test_ban_after_repeated_failures(client, login):
    for _ in range(3):
        resp = login(password='wrong')
        assert resp.status_code == 200
        assert b'Invalid credentials' in resp.data

    resp = login(password='wrong')
    assert resp.status_code == 403
    assert b'Too many failed login attempts' in resp.data

    resp = client.get('/login')
    assert resp.status_code == 403
    assert b'<form' not in resp.data

    # correct credentials are not even checked while banned
    resp = login()
    assert resp.status_code == 403
    assert client.get_cookie('access_token_cookie') is None
    assert _guard(client).failure_count('127.0.0.1') == 4


def test_success_clears_failures(client, login):
    login(password='wrong')
    login(password='wrong')
    assert _guard(client).failure_count('127.0.0.1') == 2

    resp = login()
    assert b'Signed in as admin' in resp.data
    assert _guard(client).failure_count('127.0.0.1') == 0
    assert _guard(client).ban_expiry('127.0.0.1') is None


def test_ban_survives_restart(make_app, login):
    for _ in range(4):
        login(password='wrong')

    restarted = make_app().test_client()
    resp = restarted.get('/login')
    assert resp.status_code == 403


def test_ban_behind_trusted_proxy(client, login):
    proxied = {
        'environ_base': {'REMOTE_ADDR': TRUSTED_PROXY},
        'headers': {'X-Forwarded-For': '198.51.100.7'},
    }
    for _ in range(4):
        login(password='wrong', **proxied)
    assert _guard(client).failure_count('198.51.100.7') == 4
    assert _guard(client).failure_count(TRUSTED_PROXY) == 0

    assert client.get('/login', **proxied).status_code == 403
    # other clients behind the same proxy are unaffected
    resp = client.get(
        '/login',
        environ_base={'REMOTE_ADDR': TRUSTED_PROXY},
        headers={'X-Forwarded-For': '198.51.100.8'},
    )
    assert resp.status_code == 200
    assert client.get('/login').status_code == 200


def test_forwarded_for_ignored_from_untrusted_peer(client, login):
    spoofed = {
        'environ_base': {'REMOTE_ADDR': '192.0.2.10'},
        'headers': {'X-Forwarded-For': '198.51.100.7'},
    }
    login(password='wrong', **spoofed)
    assert _guard(client).failure_count('192.0.2.10') == 1
    assert _guard(client).failure_count('198.51.100.7') == 0


def test_login_log_names_forwarded_client(client, login, caplog):
    caplog.set_level(logging.INFO, logger='banguard.auth.routes')
    proxied = {
        'environ_base': {'REMOTE_ADDR': TRUSTED_PROXY},
        'headers': {'X-Forwarded-For': '198.51.100.7'},
    }
    login(password='wrong', **proxied)
    login(**proxied)

    messages = [r.getMessage() for r in caplog.records if r.name == 'banguard.auth.routes']
    assert messages == [
        'login failed: username=admin; ip=198.51.100.7',
        'login success: username=admin; ip=198.51.100.7',
    ]


def test_corrupted_ban_file_does_not_block_startup(make_app, ban_file):
    ban_file.write_bytes(b'\xff\xfe{"failures": {}}')
    client = make_app().test_client()
    assert client.get('/login').status_code == 200
