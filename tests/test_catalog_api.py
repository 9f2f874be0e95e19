import os

from bson import ObjectId

from config import UPLOAD_DIR

API = "/api/v1"

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def product_form(category_id, **extra):
    form = {
        "name": "Runner",
        "description": "light shoe",
        "brand": "Acme",
        "price": "49.5",
        "category": str(category_id),
        "count_in_stock": "10",
        "is_featured": "true",
    }
    form.update(extra)
    return form


# ---- categories ----

def test_category_crud(client, admin_headers):
    created = client.post(f"{API}/categories", json={"name": "Hats", "color": "#fff"}, headers=admin_headers)
    assert created.status_code == 200
    cat_id = created.json()["id"]

    assert client.get(f"{API}/categories").json()[0]["name"] == "Hats"
    assert client.get(f"{API}/categories/{cat_id}").json()["color"] == "#fff"

    updated = client.put(f"{API}/categories/{cat_id}", json={"name": "Caps"}, headers=admin_headers)
    assert updated.json()["name"] == "Caps"

    deleted = client.delete(f"{API}/categories/{cat_id}", headers=admin_headers)
    assert deleted.json() == {"success": True, "message": "the category is deleted!"}
    assert client.get(f"{API}/categories/{cat_id}").status_code == 404
    assert client.delete(f"{API}/categories/{cat_id}", headers=admin_headers).status_code == 404


def test_category_writes_need_token(client):
    assert client.post(f"{API}/categories", json={"name": "Hats"}).status_code == 401


# ---- products ----

def test_create_product_with_image(client, admin_headers, make_category):
    category = make_category()
    response = client.post(
        f"{API}/products",
        data=product_form(category["_id"]),
        files={"image": ("red shoe.png", PNG, "image/png")},
        headers=admin_headers,
    )
    assert response.status_code == 200
    product = response.json()
    assert product["price"] == 49.5
    assert product["category"] == str(category["_id"])
    assert product["is_featured"] is True
    assert "/public/uploads/red-shoe.png-" in product["image"]
    assert product["image"].endswith(".png")
    filename = product["image"].rsplit("/", 1)[1]
    assert os.path.exists(os.path.join(UPLOAD_DIR, filename))


def test_create_product_rejects_unknown_category(client, admin_headers):
    response = client.post(
        f"{API}/products",
        data=product_form(ObjectId()),
        files={"image": ("a.png", PNG, "image/png")},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid Category"


def test_create_product_requires_image(client, admin_headers, make_category):
    response = client.post(f"{API}/products", data=product_form(make_category()["_id"]), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "No image in the request"


def test_create_product_rejects_other_file_types(client, admin_headers, make_category):
    before = set(os.listdir(UPLOAD_DIR))
    response = client.post(
        f"{API}/products",
        data=product_form(make_category()["_id"]),
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid image type"
    assert set(os.listdir(UPLOAD_DIR)) == before


def test_create_product_stock_is_bounded(client, admin_headers, make_category):
    response = client.post(
        f"{API}/products",
        data=product_form(make_category()["_id"], count_in_stock="256"),
        files={"image": ("a.png", PNG, "image/png")},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_list_products_populates_and_filters_by_category(client, make_category, make_product):
    shoes, hats = make_category("Shoes"), make_category("Hats")
    make_product(name="Runner", category=shoes)
    make_product(name="Cap", category=hats)

    everything = client.get(f"{API}/products").json()
    assert {p["name"] for p in everything} == {"Runner", "Cap"}
    assert {p["category"]["name"] for p in everything} == {"Shoes", "Hats"}

    only_hats = client.get(f"{API}/products", params={"categories": str(hats["_id"])}).json()
    assert [p["name"] for p in only_hats] == ["Cap"]

    both = client.get(f"{API}/products", params={"categories": f"{shoes['_id']},{hats['_id']}"}).json()
    assert len(both) == 2

    assert client.get(f"{API}/products", params={"categories": "bogus"}).status_code == 400


def test_product_with_deleted_category_lists_null_category(client, db, make_product):
    product = make_product()
    db["category"].delete_many({})
    fetched = client.get(f"{API}/products/{product['_id']}").json()
    assert fetched["category"] is None


def test_get_product_and_count(client, make_product):
    product = make_product(name="Lamp")
    assert client.get(f"{API}/products/{product['_id']}").json()["name"] == "Lamp"
    assert client.get(f"{API}/products/{ObjectId()}").status_code == 404
    assert client.get(f"{API}/products/get/count").json() == {"count": 1}


def test_featured_limit(client, make_product):
    for i in range(3):
        make_product(name=f"F{i}", is_featured=True)
    make_product(name="plain")
    assert len(client.get(f"{API}/products/get/featured/2").json()) == 2
    # 0 means no limit
    assert len(client.get(f"{API}/products/get/featured/0").json()) == 3


def test_update_product_replaces_fields(client, admin_headers, make_category, make_product):
    product = make_product(price=10)
    other = make_category("Hats")
    body = {"name": "New", "price": 12, "category": str(other["_id"]), "count_in_stock": 3}
    response = client.put(f"{API}/products/{product['_id']}", json=body, headers=admin_headers)
    assert response.status_code == 200
    updated = response.json()
    assert updated["name"] == "New"
    assert updated["price"] == 12
    assert updated["category"] == str(other["_id"])
    assert updated["is_featured"] is False

    bad = {**body, "category": str(ObjectId())}
    assert client.put(f"{API}/products/{product['_id']}", json=bad, headers=admin_headers).status_code == 400
    missing = client.put(f"{API}/products/{ObjectId()}", json=body, headers=admin_headers)
    assert missing.status_code == 404


def test_gallery_images(client, admin_headers, make_product):
    product = make_product()
    files = [
        ("images", ("one.png", PNG, "image/png")),
        ("images", ("two.jpg", b"\xff\xd8\xff", "image/jpeg")),
    ]
    response = client.put(f"{API}/products/gallery-images/{product['_id']}", files=files, headers=admin_headers)
    assert response.status_code == 200
    images = response.json()["images"]
    assert len(images) == 2
    assert images[1].endswith(".jpeg")

    assert client.put(
        f"{API}/products/gallery-images/{ObjectId()}", files=files, headers=admin_headers
    ).status_code == 404


def test_delete_product(client, admin_headers, make_product):
    product = make_product()
    response = client.delete(f"{API}/products/{product['_id']}", headers=admin_headers)
    assert response.json() == {"success": True, "message": "the product is deleted!"}
    assert client.delete(f"{API}/products/{product['_id']}", headers=admin_headers).status_code == 404
