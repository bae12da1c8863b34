import pytest

import sarest
from sarest import MalformedInputError, Resource, ShapedQuery
from sarest.config import get_config
from sarest.query import Population, visible_fields

from conftest import User, Widget


def _names(query: ShapedQuery, session) -> list:
    return [widget.name for widget in query.all(session)]


def test_where_scalar_list_and_operators(session):
    assert _names(ShapedQuery(Widget).where({"color": "red"}), session) == ["sprocket"]
    assert _names(ShapedQuery(Widget).where({"color": ["red", "blue"]}).sort("id"), session) == ["sprocket", "cog"]
    assert _names(ShapedQuery(Widget).where({"age": {"$gt": 3, "$lte": 10}}), session) == ["gear"]
    assert _names(ShapedQuery(Widget).where({"color": {"$nin": ["red"]}}).sort("id"), session) == ["gear", "cog"]
    assert ShapedQuery(Widget).where({"owner_id": None}).all(session) == []


@pytest.mark.parametrize(
    "conditions",
    [
        {"weight": 3},
        {"age": {"$regex": "1"}},
        {"age": {"$in": 3}},
        ["age"],
        {"name": {"$eq": {"x": 1}}},
        {"name": {"$gt": [1, 2]}},
        {"age": {"$in": [1, [2]]}},
        {"age": {"$nin": [{"$gt": 1}]}},
        {"age": [1, {"x": 2}]},
    ],
)
def test_where_rejects_invalid_conditions(conditions):
    with pytest.raises(MalformedInputError):
        ShapedQuery(Widget).where(conditions)


def test_where_id(session):
    assert ShapedQuery(Widget).where_id("2").first(session).name == "gear"
    assert ShapedQuery(Widget).where_id("99").first(session) is None
    assert ShapedQuery(Widget).where_id("abc").first(session) is None


def test_sort(session):
    assert _names(ShapedQuery(Widget).sort("-age"), session) == ["cog", "gear", "sprocket"]
    assert _names(ShapedQuery(Widget).sort({"owner_id": 1, "age": -1}), session) == ["gear", "sprocket", "cog"]
    # unknown fields are ignored
    assert _names(ShapedQuery(Widget).sort("weight,name"), session) == ["cog", "gear", "sprocket"]


def test_skip_and_limit(session):
    assert _names(ShapedQuery(Widget).sort("age").skip("1").limit(1), session) == ["gear"]
    assert ShapedQuery(Widget).limit(0).all(session) == []


@pytest.mark.parametrize("value", ["-1", "ten", None, True, "1.5"])
def test_skip_and_limit_reject_invalid_values(value):
    with pytest.raises(MalformedInputError):
        ShapedQuery(Widget).skip(value)
    with pytest.raises(MalformedInputError):
        ShapedQuery(Widget).limit(value)


def test_limit_is_capped(monkeypatch):
    monkeypatch.setattr(sarest.SAREST, "MAX_PAGE_LIMIT", 2)
    get_config.cache_clear()
    try:
        assert ShapedQuery(Widget).limit(500).state()["limit"] == 2
    finally:
        get_config.cache_clear()


def test_select_projection():
    assert ShapedQuery(Widget).projected_fields() == ["id", "name", "color", "age", "secret", "created", "owner_id"]
    assert ShapedQuery(Widget).select("name age").projected_fields() == ["id", "name", "age"]
    assert ShapedQuery(Widget).select("-secret -created").select("-owner_id").projected_fields() == ["id", "name", "color", "age"]
    # the identifier is always returned
    assert ShapedQuery(Widget).select("-id name").projected_fields() == ["id", "name"]


def test_hidden_fields_need_forcing():
    query = ShapedQuery(Widget, hidden={"secret"})
    assert "secret" not in query.projected_fields()
    assert "secret" not in query.select("name secret").projected_fields()
    assert query.select("+secret").projected_fields() == ["id", "name", "secret"]


def test_visible_fields():
    assert visible_fields(User) == ["id", "name", "password", "email"]
    assert visible_fields(User, hidden={"password"}) == ["id", "name", "email"]
    assert visible_fields(User, "+password", hidden={"password"}) == ["id", "name", "password", "email"]
    assert visible_fields(User, "name") == ["id", "name"]


def test_populate_entries():
    query = ShapedQuery(Widget).populate("owner").populate({"path": "owner", "select": "name"})
    query.populate(Population("owner")).populate("parts")
    assert query.state()["populate"] == [{"path": "owner"}, {"path": "owner", "select": "name"}, {"path": "owner"}]
    with pytest.raises(MalformedInputError):
        query.populate(42)


def test_populated_relationship_hides_deselected_fields(session):
    query = Resource(Widget).query().where({"name": "cog"}).select("name").populate("owner")
    assert [query.serialize(widget) for widget in query.all(session)] == [
        {"id": 3, "name": "cog", "owner": {"id": 2, "name": "bob", "email": "bob@example.com"}}
    ]


def test_populated_relationship_follows_related_resource(session):
    widgets = Resource(Widget)
    widgets.registry = {User: Resource(User, select="-email")}
    assert widgets.related_hidden() == {"owner": frozenset({"password", "email"})}

    query = widgets.query().where({"name": "cog"}).select("name").populate("owner")
    assert [query.serialize(widget) for widget in query.all(session)] == [{"id": 3, "name": "cog", "owner": {"id": 2, "name": "bob"}}]
    # a sub-select doesn't reveal them either
    query = widgets.query().where({"name": "cog"}).populate({"path": "owner", "select": "name email"})
    assert query.serialize(query.first(session))["owner"] == {"id": 2, "name": "bob"}


def test_populate_to_many(session):
    query = ShapedQuery(User, hidden={"password"}).where({"id": 1}).populate({"path": "widgets", "select": "name"})
    (user,) = query.all(session)
    result = query.serialize(user)
    assert (result["id"], result["name"]) == (1, "alice")
    assert "password" not in result
    assert sorted(result["widgets"], key=lambda w: w["id"]) == [{"id": 1, "name": "sprocket"}, {"id": 2, "name": "gear"}]


def test_state():
    query = ShapedQuery(Widget).where({"color": "red"}).sort("-age").skip(1).limit(5).select("name")
    state = query.state()
    assert state["conditions"] == {"color": "red"}
    assert state["sort"] == ["widgets.age DESC"]
    assert (state["skip"], state["limit"]) == (1, 5)
    assert state["select"] == ["id", "name"]
    assert state["populate"] == []


def test_count(session):
    assert ShapedQuery(Widget).count(session) == 3
    assert ShapedQuery(Widget).where({"owner_id": 1}).count(session) == 2
