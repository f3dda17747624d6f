import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from teastore import create_app
from teastore.config import TestConfig
from teastore.extensions import db as _db
from teastore.model import Product, User


@pytest.fixture
def app():
    """App bound to a fresh in-memory database, with its context pushed."""
    flask_app = create_app(TestConfig)
    with flask_app.app_context():
        yield flask_app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    return _db.session


@pytest.fixture
def make_user(app):
    def _make(**kwargs):
        kwargs.setdefault("name", "Anna")
        kwargs.setdefault("password_hash", generate_password_hash("secret123"))
        u = User(**kwargs)
        _db.session.add(u)
        _db.session.commit()
        return u
    return _make


@pytest.fixture
def make_product(app):
    def _make(price=100, name="Shu Puer", **kwargs):
        p = Product(name=name, slug=name.lower().replace(" ", "-"), price=price, unit="g", **kwargs)
        _db.session.add(p)
        _db.session.commit()
        return p
    return _make


@pytest.fixture
def auth_header(app):
    def _header(user):
        return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}
    return _header


@pytest.fixture
def customer():
    return {
        "name": "Anna Petrova",
        "email": "anna@example.com",
        "phone": "+79991234567",
        "address": "Moscow, Tverskaya st. 1, apt 2",
    }
