import pytest

from classwall import create_app
from classwall.feed import WALL_SCOPE, FeedStore
from classwall.firestore_models import Identity
from classwall.identity import IdentityContext
from classwall.wall import ClassWall
from fakes import FakeBackend, FakeConfig, FakeRepository


@pytest.fixture
def repo():
    repo = FakeRepository()
    repo.add_profile('U1', role='student', name='Ana')
    repo.add_profile('U2', role='student', name='Ben')
    repo.add_profile('T1', role='instructor', name='Prof. Cuestas')
    repo.add_class('C1', 'Programming', 'A', created_by='T1', students=['U1', 'U2'])
    repo.add_class('C2', 'Programming', 'B', created_by='T1', students=['U3'])
    return repo


@pytest.fixture
def feed():
    store = FeedStore()
    store.open(WALL_SCOPE)
    return store


@pytest.fixture
def make_wall(repo):
    walls = []

    def _make(uid='U1'):
        identity = IdentityContext()
        identity.sign_in(repo, uid)
        wall = ClassWall(repo, identity).start()
        walls.append(wall)
        return wall

    yield _make
    for wall in walls:
        wall.close()


@pytest.fixture
def wall(make_wall):
    return make_wall('U1')


@pytest.fixture
def student():
    return Identity(id='U2', display_name='Ben', role='student')


@pytest.fixture
def app(repo):
    app = create_app(FakeConfig, repository=repo, backend=FakeBackend())
    yield app
    app.extensions['classwall'].registry.close_all()


@pytest.fixture
def client(app):
    return app.test_client()
