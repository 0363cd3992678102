import json
import os

from campus_market import db, storage
from campus_market.config import config

PNG = ("lamp.png", b"\x89PNG\r\n\x1a\nfake", "image/png")
PDF = ("notes.pdf", b"%PDF-1.4 fake", "application/pdf")


def category_count(client, slug):
    return client.get(f"/api/categories/{slug}").json()["item_count"]


def test_categories_are_seeded(client):
    res = client.get("/api/categories")
    assert res.status_code == 200
    slugs = [c["slug"] for c in res.json()]
    assert slugs == ["lecture-notes", "textbooks", "furniture", "electronics", "dorm-essentials"]
    assert client.get("/api/categories/spaceships").status_code == 404


def test_create_listing_requires_auth(client):
    res = client.post("/api/listings", data={"data": json.dumps({"title": "x"})})
    assert res.status_code == 401


def test_create_listing_splits_images_and_attachments(client, make_user, make_listing):
    headers, user = make_user("jane")
    listing = make_listing(headers, files=[("images", PNG), ("images", PDF)])

    assert listing["seller_id"] == user["id"]
    assert listing["is_sold"] is False
    assert len(listing["images"]) == 1
    assert listing["images"][0].startswith("/uploads/")
    assert listing["images"][0].endswith(".png")
    assert len(listing["attachments"]) == 1
    assert listing["attachments"][0].endswith(".pdf")
    assert category_count(client, "lecture-notes") == 1


def test_create_listing_rejects_bad_input(client, make_user):
    headers, _ = make_user("jane")
    valid = {"title": "Lamp", "description": "Lamp", "price": 10, "condition": "good",
             "location": "Dorms", "category_id": 1}

    res = client.post("/api/listings", data={"data": "{not json"}, headers=headers)
    assert res.status_code == 400

    res = client.post("/api/listings", data={"data": json.dumps({**valid, "price": 0})}, headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Validation error"

    res = client.post("/api/listings", data={"data": json.dumps({**valid, "condition": "broken"})},
                      headers=headers)
    assert res.status_code == 400

    res = client.post("/api/listings", data={"data": json.dumps({**valid, "category_id": 99})},
                      headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Category not found"

    res = client.post("/api/listings", data={"data": json.dumps(valid)},
                      files=[("images", ("run.exe", b"MZ", "application/octet-stream"))], headers=headers)
    assert res.status_code == 400

    assert category_count(client, "lecture-notes") == 0


def test_create_listing_limits_file_count(client, make_user):
    headers, _ = make_user("jane")
    data = {"title": "Lamp", "description": "Lamp", "price": 10, "condition": "good",
            "location": "Dorms", "category_id": 1}
    files = [("images", (f"{i}.png", b"img", "image/png")) for i in range(6)]
    res = client.post("/api/listings", data={"data": json.dumps(data)}, files=files, headers=headers)
    assert res.status_code == 400


def test_filters_and_sorting(client, make_user, make_listing):
    jane, jane_user = make_user("jane")
    mike, _ = make_user("mike")
    make_listing(jane, title="Calculus Notes", price=25, category_id=1, condition="like-new")
    make_listing(jane, title="Biology Textbook", description="Campbell 12th edition",
                 price=75, category_id=2)
    make_listing(mike, title="Study Desk", price=45, category_id=3, location="West Campus")

    def titles(**params):
        res = client.get("/api/listings", params=params)
        assert res.status_code == 200
        return [l["title"] for l in res.json()]

    assert titles() == ["Study Desk", "Biology Textbook", "Calculus Notes"]
    assert titles(sort="oldest") == ["Calculus Notes", "Biology Textbook", "Study Desk"]
    assert titles(sort="price_asc") == ["Calculus Notes", "Study Desk", "Biology Textbook"]
    assert titles(sort="price_desc") == ["Biology Textbook", "Study Desk", "Calculus Notes"]
    assert titles(search="campbell") == ["Biology Textbook"]
    assert titles(search="NOTES") == ["Calculus Notes"]
    assert titles(category="textbooks") == ["Biology Textbook"]
    assert titles(min_price=30, max_price=50) == ["Study Desk"]
    assert titles(condition="like-new") == ["Calculus Notes"]
    assert titles(location="West Campus") == ["Study Desk"]
    assert titles(seller_id=jane_user["id"]) == ["Biology Textbook", "Calculus Notes"]
    assert titles(limit=1, offset=1) == ["Biology Textbook"]
    # Unknown category slugs do not filter
    assert len(titles(category="spaceships")) == 3

    assert client.get("/api/listings", params={"sort": "random"}).status_code == 400
    assert client.get("/api/listings", params={"limit": 0}).status_code == 400


def test_listing_is_enriched_with_seller_and_favorite(client, make_user, make_listing):
    jane, jane_user = make_user("jane")
    mike, _ = make_user("mike")
    listing = make_listing(jane)
    client.post(f"/api/favorites/{listing['id']}", headers=mike)

    anonymous = client.get(f"/api/listings/{listing['id']}").json()
    assert anonymous["seller"]["username"] == "jane"
    assert "hashed_password" not in anonymous["seller"]
    assert "wallet_balance" not in anonymous["seller"]
    assert anonymous["seller_rating"] == 0.0
    assert anonymous["review_count"] == 0
    assert anonymous["is_favorite"] is False

    viewed = client.get(f"/api/listings/{listing['id']}", headers=mike).json()
    assert viewed["is_favorite"] is True
    assert client.get("/api/listings", headers=mike).json()[0]["is_favorite"] is True


def test_listing_detail_includes_related(client, make_user, make_listing):
    jane, _ = make_user("jane")
    main = make_listing(jane, title="Main", category_id=4)
    for i in range(4):
        make_listing(jane, title=f"Related {i}", category_id=4)
    make_listing(jane, title="Other category", category_id=5)

    res = client.get(f"/api/listings/{main['id']}")
    assert res.status_code == 200
    related = res.json()["related_listings"]
    assert len(related) == 3
    assert all(item["category_id"] == 4 for item in related)
    assert main["id"] not in [item["id"] for item in related]

    assert client.get("/api/listings/999").status_code == 404


def test_featured_puts_urgent_first_and_hides_sold(client, make_user, make_listing):
    jane, _ = make_user("jane")
    urgent = make_listing(jane, title="Urgent", is_urgent=True)
    make_listing(jane, title="Regular")
    sold = make_listing(jane, title="Sold", is_urgent=True)
    with db.get_session() as session:
        row = storage.get_listing(session, sold["id"])
        row.is_sold = True
        session.add(row)
        session.commit()

    featured = [l["title"] for l in client.get("/api/listings/featured").json()]
    assert featured == ["Urgent", "Regular"]
    recent = [l["title"] for l in client.get("/api/listings/recent").json()]
    assert recent == ["Regular", "Urgent"]
    assert urgent["is_urgent"] is True


def test_update_listing(client, make_user, make_listing):
    jane, _ = make_user("jane")
    mike, _ = make_user("mike")
    listing = make_listing(jane, files=[("images", PNG), ("images", PDF)])
    url = f"/api/listings/{listing['id']}"

    res = client.put(url, data={"data": json.dumps({"price": 12.5})}, headers=mike)
    assert res.status_code == 403

    res = client.put(url, data={"data": json.dumps({"price": 12.5, "category_id": 2})},
                     files=[("images", ("second.jpg", b"jpg", "image/jpeg"))], headers=jane)
    assert res.status_code == 200
    updated = res.json()
    assert updated["price"] == 12.5
    assert updated["title"] == "Desk Lamp"
    assert len(updated["images"]) == 2
    assert updated["images"][0] == listing["images"][0]
    assert updated["attachments"] == listing["attachments"]
    assert category_count(client, "lecture-notes") == 0
    assert category_count(client, "textbooks") == 1

    res = client.put(url, data={"data": json.dumps({"images": [], "attachments": None})}, headers=jane)
    assert res.json()["images"] == []
    assert res.json()["attachments"] == []

    res = client.put(url, data={"data": json.dumps({"price": -1})}, headers=jane)
    assert res.status_code == 400

    res = client.put("/api/listings/999", data={"data": "{}"}, headers=jane)
    assert res.status_code == 404


def test_delete_listing(client, make_user, make_admin, make_listing):
    jane, _ = make_user("jane")
    mike, _ = make_user("mike")
    admin, _ = make_admin()
    first = make_listing(jane)
    second = make_listing(jane)
    client.post(f"/api/favorites/{first['id']}", headers=mike)
    client.post("/api/messages", json={"receiver_id": first["seller_id"], "listing_id": first["id"],
                                       "content": "Still available?"}, headers=mike)
    assert category_count(client, "lecture-notes") == 2

    assert client.delete(f"/api/listings/{first['id']}", headers=mike).status_code == 403

    res = client.delete(f"/api/listings/{first['id']}", headers=jane)
    assert res.status_code == 200
    assert client.get(f"/api/listings/{first['id']}").status_code == 404
    assert client.get("/api/favorites", headers=mike).json() == []
    assert client.get("/api/messages", headers=mike).json() == []

    assert client.delete(f"/api/listings/{second['id']}", headers=admin).status_code == 200
    assert category_count(client, "lecture-notes") == 0
    assert client.delete("/api/listings/999", headers=jane).status_code == 404


def test_delete_listing_with_orders_conflicts(client, make_user, make_listing, fund):
    jane, _ = make_user("jane")
    mike, _ = make_user("mike")
    listing = make_listing(jane, price=10)
    fund(mike, 20)
    assert client.post("/api/orders", json={"listing_id": listing["id"]}, headers=mike).status_code == 201

    res = client.delete(f"/api/listings/{listing['id']}", headers=jane)
    assert res.status_code == 409
    assert client.get(f"/api/listings/{listing['id']}").status_code == 200


def test_upload_endpoints(client, make_user):
    headers, _ = make_user("jane")
    assert client.post("/api/upload/", files={"file": PNG}).status_code == 401

    res = client.post("/api/upload/", files={"file": PNG}, headers=headers)
    assert res.status_code == 200
    url = res.json()["url"]
    assert url.startswith("/uploads/")

    res = client.post("/api/upload/", files={"file": ("x.txt", b"hi", "text/plain")}, headers=headers)
    assert res.status_code == 400

    res = client.post("/api/upload/multiple", files=[("files", PNG), ("files", PDF)], headers=headers)
    assert res.status_code == 200
    assert len(res.json()["files"]) == 2

    name = url.rsplit("/", 1)[1]
    assert client.delete(f"/api/upload/{name}", headers=headers).status_code == 200
    assert client.delete(f"/api/upload/{name}", headers=headers).status_code == 404


def uploaded_files():
    return os.listdir(config.UPLOAD_DIR) if os.path.isdir(config.UPLOAD_DIR) else []


def test_rejected_batch_writes_no_files(client, make_user, make_listing):
    headers, _ = make_user("jane")
    data = {"title": "Lamp", "description": "Lamp", "price": 10, "condition": "good",
            "location": "Dorms", "category_id": 1}
    files = [("images", PNG), ("images", ("readme.txt", b"hello", "text/plain"))]

    res = client.post("/api/listings", data={"data": json.dumps(data)}, files=files, headers=headers)
    assert res.status_code == 400
    assert uploaded_files() == []

    res = client.post("/api/upload/multiple", files=[("files", PNG), ("files", ("a.txt", b"x", "text/plain"))],
                      headers=headers)
    assert res.status_code == 400
    assert uploaded_files() == []

    listing = make_listing(headers)
    res = client.put(f"/api/listings/{listing['id']}", data={"data": "{}"}, files=files, headers=headers)
    assert res.status_code == 400
    assert uploaded_files() == []


def test_update_to_unknown_category_is_rejected(client, make_user, make_listing):
    headers, _ = make_user("jane")
    listing = make_listing(headers)

    res = client.put(f"/api/listings/{listing['id']}", data={"data": json.dumps({"category_id": 999})},
                     files=[("images", PNG)], headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Category not found"
    assert uploaded_files() == []
    assert client.get(f"/api/listings/{listing['id']}").json()["category_id"] == 1
    assert category_count(client, "lecture-notes") == 1


def test_update_only_keeps_existing_file_paths(client, make_user, make_listing):
    headers, _ = make_user("jane")
    listing = make_listing(headers, files=[("images", PNG)])
    own = listing["images"][0]

    res = client.put(f"/api/listings/{listing['id']}", headers=headers, data={"data": json.dumps({
        "images": ["https://elsewhere.example/x.png", "/uploads/../../etc/passwd", own],
        "attachments": ["/uploads/someone-elses.pdf"],
    })})
    assert res.status_code == 200
    assert res.json()["images"] == [own]
    assert res.json()["attachments"] == []
