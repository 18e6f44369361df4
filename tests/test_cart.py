from concurrent.futures import ThreadPoolExecutor

from bson import ObjectId


def test_add_to_cart_and_list(client, make_class, bearer, stores):
    a = make_class("A")
    make_class("B")
    res = client.post("/add-to-cart", json={"classId": str(a["_id"]), "userMail": "a@x.com"}, headers=bearer("a@x.com"))
    assert res.status_code == 200
    assert stores.cart.count_documents({"userMail": "a@x.com"}) == 1

    classes = client.get("/cart/a@x.com", headers=bearer("a@x.com")).json()
    assert [c["name"] for c in classes] == ["A"]


def test_add_to_cart_defaults_owner_to_caller(client, make_class, bearer, stores):
    a = make_class("A")
    client.post("/add-to-cart", json={"classId": str(a["_id"])}, headers=bearer("a@x.com"))
    assert stores.cart.find_one({"classId": str(a["_id"])})["userMail"] == "a@x.com"


def test_add_to_cart_requires_existing_class(client, bearer):
    res = client.post("/add-to-cart", json={"classId": str(ObjectId())}, headers=bearer("a@x.com"))
    assert res.status_code == 404
    res = client.post("/add-to-cart", json={"classId": "nope"}, headers=bearer("a@x.com"))
    assert res.status_code == 400


def test_concurrent_identical_adds_store_two_rows(client, make_class, bearer, stores):
    a = make_class("A")
    payload = {"classId": str(a["_id"]), "userMail": "a@x.com"}
    headers = bearer("a@x.com")

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(lambda _: client.post("/add-to-cart", json=payload, headers=headers), range(2)))

    assert [r.status_code for r in results] == [200, 200]
    assert stores.cart.count_documents(payload) == 2


def test_cart_item_lookup(client, make_class, bearer):
    a = make_class("A")
    class_id = str(a["_id"])
    client.post("/add-to-cart", json={"classId": class_id}, headers=bearer("a@x.com"))

    item = client.get(f"/cart-item/{class_id}", headers=bearer("a@x.com")).json()
    assert set(item) == {"_id", "classId"}
    assert item["classId"] == class_id

    by_query = client.get(f"/cart-item/{class_id}", params={"email": "a@x.com"}, headers=bearer("b@x.com")).json()
    assert by_query["classId"] == class_id

    assert client.get(f"/cart-item/{class_id}", headers=bearer("b@x.com")).json() is None


def test_delete_cart_item_only_touches_callers_row(client, make_class, bearer, stores):
    a = make_class("A")
    class_id = str(a["_id"])
    client.post("/add-to-cart", json={"classId": class_id}, headers=bearer("a@x.com"))
    client.post("/add-to-cart", json={"classId": class_id}, headers=bearer("b@x.com"))

    res = client.delete(f"/delete-cart-item/{class_id}", headers=bearer("a@x.com"))
    assert res.json() == {"acknowledged": True, "deletedCount": 1}
    assert stores.cart.count_documents({"userMail": "a@x.com"}) == 0
    assert stores.cart.count_documents({"userMail": "b@x.com"}) == 1


def test_cart_skips_dangling_class_ids(client, make_class, bearer, stores):
    a = make_class("A")
    stores.cart.insert_many([
        {"classId": str(a["_id"]), "userMail": "a@x.com"},
        {"classId": "legacy", "userMail": "a@x.com"},
        {"classId": str(ObjectId()), "userMail": "a@x.com"},
    ])
    classes = client.get("/cart/a@x.com", headers=bearer("a@x.com")).json()
    assert [c["name"] for c in classes] == ["A"]
