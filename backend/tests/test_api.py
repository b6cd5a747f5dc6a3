from fastapi.testclient import TestClient

from main import app, store


client = TestClient(app)


def _new_project() -> str:
    r = client.post('/api/projects', json={"title": "T1"})
    assert r.status_code == 200
    return r.json()['project_id']


def test_health_and_schema():
    assert client.get('/api/health').json() == {"status": "ok"}
    assert "card" in client.get('/api/schema').json()["schemas"]
    assert client.get('/api/schema/move').json()["required"] == ["dragIndex", "hoverIndex"]
    assert client.get('/api/schema/nope').status_code == 404


def test_card_tree_closed_loop():
    pid = _new_project()
    assert client.get(f'/api/projects/{pid}/cards').json() == []

    role = client.post(f'/api/projects/{pid}/cards', json={"containerType": "collection", "title": "甲", "tag": "role"}).json()
    other = client.post(f'/api/projects/{pid}/cards', json={"containerType": "collection", "title": "乙"}).json()
    desc = client.post(
        f'/api/projects/{pid}/cards/{role["id"]}/children',
        json={"containerType": "editor", "title": "角色描述", "props": [{"name": "desc", "value": "角色描述"}]},
    ).json()
    assert desc["tag"] == "role-desc"
    assert desc["parent"] == role["id"]
    assert client.get(f'/api/projects/{pid}/cards/{role["id"]}').json()["isCollapsed"] is False

    r = client.patch(f'/api/projects/{pid}/cards/{desc["id"]}', json={"content": "侦探，高瘦"})
    assert r.json()["content"] == "侦探，高瘦"

    r = client.post(
        f'/api/projects/{pid}/cards/move',
        json={"dragIndex": 0, "hoverIndex": 0, "dragParentId": role["id"], "hoverParentId": other["id"]},
    )
    assert r.status_code == 200
    assert r.json()["outcome"] == "moved"
    cards = r.json()["cards"]
    assert cards[0]["childCards"] == []
    assert cards[1]["childCards"][0]["id"] == desc["id"]
    assert cards[1]["childCards"][0]["parent"] == other["id"]

    saved = store.read_forest(pid)
    assert saved[1]["childCards"][0]["content"] == "侦探，高瘦"


def test_rejected_moves_return_conflict():
    pid = _new_project()
    coll = client.post(f'/api/projects/{pid}/cards', json={"containerType": "collection"}).json()
    ed = client.post(f'/api/projects/{pid}/cards', json={"containerType": "editor"}).json()

    r = client.post(f'/api/projects/{pid}/cards/move', json={"dragIndex": 0, "hoverIndex": 0, "hoverParentId": ed["id"]})
    assert r.status_code == 409
    assert r.json()["detail"]["outcome"] == "invalid_target"

    r = client.post(f'/api/projects/{pid}/cards/move', json={"dragIndex": 0, "hoverIndex": 0, "hoverParentId": coll["id"]})
    assert r.json()["detail"]["outcome"] == "cycle_rejected"

    r = client.post(f'/api/projects/{pid}/cards/move', json={"dragIndex": "x", "hoverIndex": 0})
    assert r.status_code == 400

    r = client.post(f'/api/projects/{pid}/cards/{ed["id"]}/children', json={"containerType": "editor"})
    assert r.status_code == 409


def test_relate_layout_and_toggles():
    pid = _new_project()
    coll = client.post(f'/api/projects/{pid}/cards', json={"containerType": "collection"}).json()
    ed = client.post(f'/api/projects/{pid}/cards', json={"containerType": "editor"}).json()

    r = client.put(f'/api/projects/{pid}/cards/{ed["id"]}/related', json={"id": "chapter_001", "title": "雨夜来信", "type": "chapter"})
    assert r.json()["relatedItem"]["id"] == "chapter_001"
    r = client.delete(f'/api/projects/{pid}/cards/{ed["id"]}/related')
    assert "relatedItem" not in r.json()

    assert client.put(f'/api/projects/{pid}/cards/{coll["id"]}/layout', json={"layoutStyle": "adaptive"}).json()["layoutStyle"] == "adaptive"
    assert client.put(f'/api/projects/{pid}/cards/{coll["id"]}/layout', json={"layoutStyle": "diagonal"}).status_code == 400
    assert "layoutStyle" not in client.put(f'/api/projects/{pid}/cards/{ed["id"]}/layout', json={"layoutStyle": "vertical"}).json()

    assert client.post(f'/api/projects/{pid}/cards/{coll["id"]}/collapse').json()["isCollapsed"] is False
    assert client.post(f'/api/projects/{pid}/cards/{coll["id"]}/visibility').json()["isVisible"] is False

    buttons = client.get(f'/api/projects/{pid}/cards/{ed["id"]}/buttons').json()
    assert buttons["show_relate_button"] is True and buttons["show_add_button"] is False


def test_delete_and_missing_resources():
    pid = _new_project()
    coll = client.post(f'/api/projects/{pid}/cards', json={"containerType": "collection"}).json()
    client.post(f'/api/projects/{pid}/cards/{coll["id"]}/children', json={"containerType": "editor"})

    assert client.delete(f'/api/projects/{pid}/cards/{coll["id"]}').json() == {"deleted": True}
    assert client.delete(f'/api/projects/{pid}/cards/{coll["id"]}').json() == {"deleted": False}
    assert client.get(f'/api/projects/{pid}/cards').json() == []

    assert client.get(f'/api/projects/{pid}/cards/ghost').status_code == 404
    assert client.patch(f'/api/projects/{pid}/cards/ghost', json={"title": "x"}).status_code == 404
    assert client.get('/api/projects/no_such_project/cards').status_code == 404
    assert client.post(f'/api/projects/{pid}/cards', json={"containerType": "folder"}).status_code == 400


def test_demo_project_is_seeded():
    cards = client.get('/api/projects/demo_project_001/cards').json()
    assert cards[0]["tag"] == "role"
    assert [c["tag"] for c in cards[0]["childCards"]] == ["role-角色描述", "role-核心动机"]


def test_malformed_patch_leaves_project_readable():
    pid = _new_project()
    coll = client.post(f'/api/projects/{pid}/cards', json={"containerType": "collection", "title": "提纲"}).json()

    for patch in ({"updatedAt": "yesterday"}, {"layoutStyle": "diagonal"}, {"props": ["x"]}, {"relatedItem": {"title": "x"}}):
        r = client.patch(f'/api/projects/{pid}/cards/{coll["id"]}', json=patch)
        assert r.status_code == 200
        assert r.json()["updatedAt"] == coll["updatedAt"]

    card = client.get(f'/api/projects/{pid}/cards/{coll["id"]}').json()
    assert "layoutStyle" not in card and card["props"] == []
    assert client.get(f'/api/projects/{pid}/cards').status_code == 200
    assert store.read_forest(pid)[0]["updatedAt"] == coll["updatedAt"]


def test_malformed_new_card_bodies_are_bad_requests():
    pid = _new_project()
    coll = client.post(f'/api/projects/{pid}/cards', json={"containerType": "collection"}).json()
    assert client.post(f'/api/projects/{pid}/cards', json={"containerType": "editor", "props": ["x"]}).status_code == 400
    assert client.post(f'/api/projects/{pid}/cards', json={"containerType": "editor", "title": 7}).status_code == 400
    r = client.post(f'/api/projects/{pid}/cards/{coll["id"]}/children', json={"containerType": "editor", "props": "desc"})
    assert r.status_code == 400
    assert client.get(f'/api/projects/{pid}/cards').json()[0]["childCards"] == []


def test_move_from_unknown_container_is_not_found():
    pid = _new_project()
    client.post(f'/api/projects/{pid}/cards', json={"containerType": "collection"})
    r = client.post(f'/api/projects/{pid}/cards/move', json={"dragIndex": 0, "hoverIndex": 0, "dragParentId": "ghost"})
    assert r.status_code == 404
    assert r.json()["detail"]["outcome"] == "not_found"
    r = client.post(f'/api/projects/{pid}/cards/move', json={"dragIndex": 5, "hoverIndex": 0})
    assert r.status_code == 404
