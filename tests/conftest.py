import datetime

import pytest
from flask import Flask
from flask_sqlalchemy import SQLAlchemy

from sarest import SARESTAPI, Resource

db = SQLAlchemy()


class User(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String, nullable=False)
    password = db.Column(db.String, info={"selected": False})
    email = db.Column(db.String)
    widgets = db.relationship("Widget", back_populates="owner")


class Widget(db.Model):
    """
    description: Widgets for sale
    select: -secret
    """

    __tablename__ = "widgets"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String, nullable=False)
    color = db.Column(db.Enum("red", "green", "blue", name="color"), default="red")
    age = db.Column(db.Integer, info={"min": 0, "max": 120})
    secret = db.Column(db.String)
    created = db.Column(db.DateTime, default=datetime.datetime(2020, 1, 1))
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    owner = db.relationship("User", back_populates="widgets")


def _seed() -> None:
    alice = User(id=1, name="alice", password="pw1", email="alice@example.com")
    bob = User(id=2, name="bob", password="pw2", email="bob@example.com")
    db.session.add_all(
        [
            alice,
            bob,
            Widget(id=1, name="sprocket", color="red", age=3, secret="s1", owner=alice),
            Widget(id=2, name="gear", color="green", age=10, secret="s2", owner=alice),
            Widget(id=3, name="cog", color="blue", age=50, secret="s3", owner=bob),
        ]
    )
    db.session.commit()


@pytest.fixture
def app():
    app = Flask("sarest_tests")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://", TESTING=True)
    db.init_app(app)
    with app.app_context():
        api = SARESTAPI(app, app_db=db)
        api.expose(Resource(Widget))
        api.expose(User, verbs=["get"], select="-email")
        db.create_all()
        _seed()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    with app.app_context():
        yield db.session
