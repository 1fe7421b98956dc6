import os, sys, pytest
# Ensure the backend directory is on path so 'fieldservice' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from fieldservice import create_app, get_db
from fieldservice.models.base import Base
# Import all model modules to ensure tables are registered before create_all
import fieldservice.models.profile  # noqa: F401
import fieldservice.models.ticket  # noqa: F401

@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({
        'TICKET_BACKEND': 'sql',
        # feed reloads are exercised directly against the manager
        'CHANGE_FEED_DEBOUNCE': 60.0,
    })
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app

@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
