import os, sys, pytest
# Ensure backend directory is on path so 'po_api' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from po_api import create_app, get_database

TEST_CONFIG = {
    'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
    'JWT_SECRET_KEY': 'test-secret-key-that-is-long-enough-for-hs256',
    'LOG_LEVEL': 'WARNING',
    'CORS_ORIGINS': ['http://localhost:3001'],
}


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app(TEST_CONFIG)
    with app.app_context():
        get_database().create_all()
    yield app


@pytest.fixture(autouse=True)
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
