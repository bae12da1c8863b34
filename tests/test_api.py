import json
from http import HTTPStatus


def _get(client, url, **params):
    query_string = {k: json.dumps(v) if isinstance(v, (dict, list)) else v for k, v in params.items()}
    return client.get(url, query_string=query_string)


def _error(response) -> dict:
    return response.get_json()["errors"][0]


def test_get_collection_uses_default_projection(client):
    response = _get(client, "/widgets", sort="id")
    assert response.status_code == HTTPStatus.OK
    widgets = response.get_json()
    assert [w["name"] for w in widgets] == ["sprocket", "gear", "cog"]
    assert all("secret" not in w for w in widgets)
    assert widgets[0]["created"] == "2020-01-01T00:00:00"
    assert widgets[0]["color"] == "red"


def test_get_collection_shaped(client):
    response = _get(client, "/widgets", conditions={"age": {"$gte": 10}}, sort="-age", select="name")
    assert response.get_json() == [{"id": 3, "name": "cog"}, {"id": 2, "name": "gear"}]

    response = _get(client, "/widgets", sort="age", skip=1, limit=1, select="name")
    assert response.get_json() == [{"id": 2, "name": "gear"}]


def test_get_collection_populated(client):
    response = _get(client, "/widgets", conditions={"name": "cog"}, select="name", populate={"path": "owner"})
    assert response.get_json() == [{"id": 3, "name": "cog", "owner": {"id": 2, "name": "bob"}}]


def test_exclusion_select_is_allowed(client):
    response = _get(client, "/widgets", select="-secret -created", sort="id")
    assert response.status_code == HTTPStatus.OK
    assert set(response.get_json()[0]) == {"id", "name", "color", "age", "owner_id"}


def test_forced_select_is_forbidden(client):
    for select in ("+secret", "secret"):
        response = _get(client, "/widgets", select=select)
        assert response.status_code == HTTPStatus.FORBIDDEN
        error = _error(response)
        assert error["code"] == "403"
        assert error["title"].startswith("Forbidden Selection: Including excluded fields is not permitted.")


def test_populate_forced_sub_select_is_forbidden(client):
    response = _get(client, "/widgets", populate={"path": "owner", "select": "+password"})
    assert response.status_code == HTTPStatus.FORBIDDEN


def test_user_password_is_never_selected(client):
    response = _get(client, "/users", select="password")
    assert response.status_code == HTTPStatus.FORBIDDEN
    response = _get(client, "/users", sort="id")
    assert response.get_json() == [{"id": 1, "name": "alice"}, {"id": 2, "name": "bob"}]


def test_malformed_conditions(client):
    response = _get(client, "/widgets", conditions="{color: red")
    assert response.status_code == HTTPStatus.BAD_REQUEST
    error = _error(response)
    assert error["code"] == "400"
    assert error["title"].startswith("Malformed Input: ")

    assert _get(client, "/widgets", conditions={"weight": 3}).status_code == HTTPStatus.BAD_REQUEST
    assert _get(client, "/widgets", limit="many").status_code == HTTPStatus.BAD_REQUEST


def test_no_match(client):
    response = _get(client, "/widgets", conditions={"color": "purple"})
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert _error(response)["title"] == "Not Found: No widgets matched that query."


def test_get_instance(client):
    response = _get(client, "/widgets/1", select="name", populate={"path": "owner"})
    assert response.get_json() == {"id": 1, "name": "sprocket", "owner": {"id": 1, "name": "alice"}}

    response = client.get("/widgets/99")
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert _error(response)["title"] == "Not Found: No widget was found with that ID."


def test_head(client):
    response = client.head("/widgets")
    assert response.status_code == HTTPStatus.OK
    assert response.data == b""


def test_post(client):
    response = client.post("/widgets", json={"name": "bolt", "age": "7", "owner_id": 2})
    assert response.status_code == HTTPStatus.CREATED
    widget = response.get_json()
    assert (widget["id"], widget["name"], widget["age"], widget["color"]) == (4, "bolt", 7, "red")
    assert "secret" not in widget

    response = client.post("/widgets", json=[{"name": "nut"}, {"name": "washer"}])
    assert [w["name"] for w in response.get_json()] == ["nut", "washer"]
    assert len(_get(client, "/widgets").get_json()) == 6


def test_post_invalid_documents(client):
    assert client.post("/widgets", json={"name": "bolt", "weight": 3}).status_code == HTTPStatus.BAD_REQUEST
    assert client.post("/widgets", data="nope", content_type="text/plain").status_code == HTTPStatus.BAD_REQUEST
    # nothing was written
    assert len(_get(client, "/widgets").get_json()) == 3


def test_put(client):
    response = client.put("/widgets/1", json={"age": 4})
    assert response.status_code == HTTPStatus.OK
    assert response.get_json()["age"] == 4
    assert _get(client, "/widgets/1").get_json()["age"] == 4
    assert client.put("/widgets/99", json={"age": 4}).status_code == HTTPStatus.NOT_FOUND


def test_delete(client):
    response = client.delete("/widgets", query_string={"conditions": json.dumps({"owner_id": 2})})
    assert response.get_json() == 1
    assert client.get("/widgets/3").status_code == HTTPStatus.NOT_FOUND

    assert client.delete("/widgets/1").get_json() == 1
    assert [w["name"] for w in _get(client, "/widgets").get_json()] == ["gear"]


def test_disabled_verbs_are_not_routed(client):
    assert client.post("/users", json={"name": "carol"}).status_code == HTTPStatus.METHOD_NOT_ALLOWED
    assert client.delete("/users/1").status_code == HTTPStatus.METHOD_NOT_ALLOWED


def test_resource_listing(client):
    listing = client.get("/api-docs").get_json()
    assert listing["swaggerVersion"] == "1.1"
    assert listing["apis"] == [
        {"path": "/widgets", "description": "Widgets for sale"},
        {"path": "/users", "description": "Operations about users"},
    ]


def test_api_declaration(client):
    definition = client.get("/api-docs/widgets").get_json()
    assert definition["basePath"] == "http://localhost"
    assert definition["resourcePath"] == "/widgets"
    assert "secret" not in definition["models"]["Widget"]["properties"]
    assert definition["models"]["Widget"]["properties"]["age"]["allowableValues"] == {"valueType": "RANGE", "min": 0, "max": 120}

    definition = client.get("/api-docs/users").get_json()
    assert list(definition["models"]["User"]["properties"]) == ["id", "name"]
    assert [op["nickname"] for api in definition["apis"] for op in api["operations"]] == ["getUserById", "getUsers"]


def test_populate_follows_related_resource_visibility(client):
    response = _get(client, "/widgets", conditions={"name": "cog"}, select="name", populate={"path": "owner", "select": "-password"})
    assert response.get_json() == [{"id": 3, "name": "cog", "owner": {"id": 2, "name": "bob"}}]

    for select in ("email", "name email"):
        response = _get(client, "/widgets", populate={"path": "owner", "select": select})
        assert response.status_code == HTTPStatus.FORBIDDEN
    assert _get(client, "/users", select="email").status_code == HTTPStatus.FORBIDDEN
    assert _get(client, "/widgets/3", populate={"path": "owner", "select": "email"}).status_code == HTTPStatus.FORBIDDEN


def test_condition_operands_must_be_values(client):
    for conditions in ({"name": {"$eq": {"x": 1}}}, {"name": {"$gt": [1, 2]}}, {"age": {"$in": [1, [2]]}}, {"age": [{"x": 1}]}):
        response = _get(client, "/widgets", conditions=conditions)
        assert response.status_code == HTTPStatus.BAD_REQUEST
        assert _error(response)["title"].startswith("Malformed Input: ")


def test_instance_ignores_paging(client):
    response = _get(client, "/widgets/1", skip=1, limit=0, select="name")
    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"id": 1, "name": "sprocket"}
    assert client.delete("/widgets/1", query_string={"skip": 1}).get_json() == 1
