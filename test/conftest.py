import pytest

from faultbox.app import create_app
from faultbox.scenario.models import ScenarioKind

# One "minute" of scenario duration lasts this many seconds in tests.
SECONDS_PER_MINUTE = 0.5


@pytest.fixture(scope="session")
def app():
    """
    Setup our flask test app, this only gets executed once.

    :return: Flask app
    """
    params = {
        "DEBUG": False,
        "TESTING": True,
        "SERVER_NAME": "localhost",
        "STRUCTURED_LOGGING": False,
        "CLOUDWATCH_ENABLED": False,
        "SCENARIO_SECONDS_PER_MINUTE": SECONDS_PER_MINUTE,
        "SCENARIO_TARGET_URL": "",
        "DEADLOCK_AUX_THREADS": 3,
        "DEADLOCK_SETTLE_SECONDS": 0.05,
        "DEADLOCK_HOLD_SECONDS": 0.05,
        "MEMSPIKE_OBJECTS": 1000,
        "MEMSPIKE_PAUSE_SECONDS": 0.05,
        "PROBABILISTIC_LOAD_BACKEND_SECONDS": 0.01,
        "SIMULATED_QUERY_SECONDS": 0.05,
        "QUERY_EXECUTOR_WORKERS": 4,
    }

    _app = create_app(settings_override=params)

    ctx = _app.app_context()
    ctx.push()

    yield _app

    ctx.pop()


@pytest.fixture(scope="function")
def client(app):
    """
    Setup an app client, this gets executed for each test function.

    :param app: Pytest fixture
    :return: Flask app client
    """
    yield app.test_client()


@pytest.fixture(scope="function")
def registry(app):
    return app.extensions["scenario_registry"]


@pytest.fixture(autouse=True)
def reset_scenarios(request):
    """Stop every scenario and drop every lease after each test."""
    if "app" not in request.fixturenames:
        yield
        return

    _app = request.getfixturevalue("app")

    yield

    _registry = _app.extensions["scenario_registry"]
    _registry.stop_all()
    for kind in ScenarioKind:
        _registry.join(kind, timeout=5)
    _app.extensions["memory_leases"].release_all()
