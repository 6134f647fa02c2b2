from decimal import Decimal

import pytest

from eshop import uploads
from eshop.errors import ValidationFailed

from conftest import API, make_category, make_product

PNG = b"\x89PNG\r\n\x1a\n fake image"


def _product_form(category_id, **overrides):
    data = {
        "name": "Red Shoe",
        "description": "A shoe",
        "richDescription": "A very red shoe",
        "brand": "Acme",
        "price": "19.99",
        "category": str(category_id),
        "countInStock": "3",
        "isFeatured": "true",
    }
    data.update(overrides)
    return data


def test_create_product_with_image(client, db_session, admin_headers, upload_dir):
    cat = make_category(db_session)
    r = client.post(
        f"{API}/products",
        data=_product_form(cat.id),
        files={"image": ("red shoe.png", PNG, "image/png")},
        headers=admin_headers,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Red Shoe"
    assert Decimal(body["price"]) == Decimal("19.99")
    assert body["countInStock"] == 3
    assert body["isFeatured"] is True
    assert body["category"]["id"] == cat.id
    assert body["image"].startswith("http://testserver/public/uploads/red-shoe.png-")
    assert body["image"].endswith(".png")

    stored = list(upload_dir.iterdir())
    assert len(stored) == 1
    assert stored[0].read_bytes() == PNG
    assert body["image"].endswith(stored[0].name)


def test_create_product_requires_image(client, db_session, admin_headers):
    cat = make_category(db_session)
    r = client.post(f"{API}/products", data=_product_form(cat.id), files={"other": ("x.txt", b"x", "text/plain")}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "No image file in the request"


def test_create_product_rejects_unknown_category(client, admin_headers, upload_dir):
    r = client.post(
        f"{API}/products",
        data=_product_form(404),
        files={"image": ("a.png", PNG, "image/png")},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid Category"
    # nothing written for a rejected product
    assert list(upload_dir.iterdir()) == []


def test_create_product_rejects_bad_image_type(client, db_session, admin_headers):
    cat = make_category(db_session)
    r = client.post(
        f"{API}/products",
        data=_product_form(cat.id),
        files={"image": ("a.gif", b"GIF89a", "image/gif")},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid image type"


def test_create_product_validates_fields(client, db_session, admin_headers):
    cat = make_category(db_session)
    r = client.post(
        f"{API}/products",
        data=_product_form(cat.id, countInStock="-1"),
        files={"image": ("a.png", PNG, "image/png")},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert "countInStock" in r.json()["message"] or "count_in_stock" in r.json()["message"]


def test_update_product_keeps_image_without_upload(client, db_session, admin_headers):
    cat = make_category(db_session)
    product = make_product(db_session, cat, name="Hat", price="5.00")
    old_image = product.image

    r = client.put(f"{API}/products/{product.id}", data={"price": "6.50", "name": "Big Hat"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["image"] == old_image
    assert r.json()["name"] == "Big Hat"
    assert Decimal(r.json()["price"]) == Decimal("6.50")
    # untouched fields survive
    assert r.json()["description"] == "Hat description"


def test_update_product_with_new_image(client, db_session, admin_headers):
    cat = make_category(db_session)
    product = make_product(db_session, cat, name="Hat")
    r = client.put(
        f"{API}/products/{product.id}",
        data={"name": "Hat"},
        files={"image": ("new hat.jpg", b"jpegdata", "image/jpeg")},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert "/public/uploads/new-hat.jpg-" in r.json()["image"]
    assert r.json()["image"].endswith(".jpeg")


def test_update_product_checks_category_and_existence(client, db_session, admin_headers):
    cat = make_category(db_session)
    product = make_product(db_session, cat)
    r = client.put(f"{API}/products/{product.id}", data={"category": "999"}, headers=admin_headers)
    assert r.status_code == 400

    r = client.put(f"{API}/products/999", data={"name": "x"}, headers=admin_headers)
    assert r.status_code == 404


def test_gallery_images(client, db_session, admin_headers, upload_dir):
    cat = make_category(db_session)
    product = make_product(db_session, cat)
    files = [("images", (f"g{i}.png", PNG, "image/png")) for i in range(3)]

    r = client.put(f"{API}/products/gallery-images/{product.id}", files=files, headers=admin_headers)
    assert r.status_code == 200
    images = r.json()["images"]
    assert len(images) == 3
    assert all(url.startswith("http://testserver/public/uploads/g") for url in images)
    assert len(list(upload_dir.iterdir())) == 3


def test_gallery_images_limit(client, db_session, admin_headers, upload_dir):
    cat = make_category(db_session)
    product = make_product(db_session, cat)
    files = [("images", (f"g{i}.png", PNG, "image/png")) for i in range(11)]

    r = client.put(f"{API}/products/gallery-images/{product.id}", files=files, headers=admin_headers)
    assert r.status_code == 400
    assert list(upload_dir.iterdir()) == []


def test_delete_product(client, db_session, admin_headers):
    cat = make_category(db_session)
    product = make_product(db_session, cat)
    r = client.delete(f"{API}/products/{product.id}", headers=admin_headers)
    assert r.json() == {"success": True, "message": "the product was deleted!"}
    assert client.get(f"{API}/products/{product.id}").status_code == 404


@pytest.mark.parametrize("content_type,ext", [("image/png", "png"), ("image/jpeg", "jpeg"), ("image/jpg", "jpg")])
def test_stored_filename(content_type, ext):
    name = uploads.stored_filename("my photo.x", content_type)
    assert name.startswith("my-photo.x-")
    assert name.endswith(f".{ext}")


@pytest.mark.parametrize("client_name,expected", [
    ("../escaped.png", "escaped.png-"),
    ("nodir/a.png", "a.png-"),
    ("..\\..\\win.png", "win.png-"),
    (".hidden.png", "hidden.png-"),
    ("..", "image-"),
])
def test_stored_filename_drops_directories(client_name, expected):
    name = uploads.stored_filename(client_name, "image/png")
    assert name.startswith(expected)
    assert "/" not in name and "\\" not in name


@pytest.mark.parametrize("client_name", ["../escaped.png", "nodir/a.png"])
def test_create_product_keeps_upload_inside_upload_dir(client, db_session, admin_headers, upload_dir, client_name):
    cat = make_category(db_session)
    r = client.post(
        f"{API}/products",
        data=_product_form(cat.id),
        files={"image": (client_name, PNG, "image/png")},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert ".." not in r.json()["image"]
    assert r.json()["image"].startswith("http://testserver/public/uploads/")

    stored = list(upload_dir.iterdir())
    assert len(stored) == 1
    assert stored[0].is_file()
    assert r.json()["image"].endswith("/" + stored[0].name)
    assert not list(upload_dir.parent.glob("escaped.png-*"))


def test_stored_filename_rejects_other_types():
    with pytest.raises(ValidationFailed):
        uploads.stored_filename("doc.pdf", "application/pdf")
