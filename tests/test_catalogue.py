def test_list_products(client):
    res = client.get("/api/products")
    assert res.status_code == 200
    body = res.json()
    assert "items" in body
    ids = [it["id"] for it in body["items"]]
    assert ids == ["P1", "P2", "P3"]
    p2 = next(it for it in body["items"] if it["id"] == "P2")
    assert float(p2["discounted_price"]) == 100.0


def test_search_and_price_filters(client):
    res = client.get("/api/products", params={"search": "head"})
    assert [it["id"] for it in res.json()["items"]] == ["P2"]

    # max_price applies to the discounted price: P2 costs 100 after discount
    res = client.get("/api/products", params={"max_price": "100"})
    assert [it["id"] for it in res.json()["items"]] == ["P1", "P2", "P3"]
    res = client.get("/api/products", params={"max_price": "99"})
    assert [it["id"] for it in res.json()["items"]] == ["P3"]

    res = client.get("/api/products", params={"min_price": "150"})
    assert [it["id"] for it in res.json()["items"]] == ["P2"]


def test_get_product(client):
    res = client.get("/api/products/P3")
    assert res.status_code == 200
    assert res.json()["name"] == "Notebook"
    assert client.get("/api/products/NOPE").status_code == 404


def test_malformed_products_are_skipped(client, shop):
    shop.products["BAD"] = {"id": "BAD", "name": "Broken", "price": -5}
    ids = [it["id"] for it in client.get("/api/products").json()["items"]]
    assert "BAD" not in ids
    assert len(ids) == 3
