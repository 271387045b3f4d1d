import io

import pytest
from PIL import Image, ImageFile

from recipehub.errors import ValidationFailed
from recipehub.services import image_upload
from recipehub.storage.local import LocalStore, media_root
from recipehub.storage.s3_compat import key_from_url


def _image_bytes(size=(800, 600), fmt="PNG", mode="RGB"):
    buf = io.BytesIO()
    Image.new(mode, size, color=(200, 80, 40) if mode == "RGB" else 128).save(buf, format=fmt)
    return buf.getvalue()


def test_upload_converts_to_webp_and_stores(client, chef, chef_headers):
    res = client.post(
        "/api/v1/recipes/upload-image",
        files={"image": ("dish.png", _image_bytes(), "image/png")},
        headers=chef_headers,
    )
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    assert data["content_type"] == "image/webp"
    assert data["width"] == 800
    assert data["height"] == 600
    assert data["key"].startswith(f"recipes/{chef.id}/")
    assert data["key"].endswith(".webp")
    assert data["url"].endswith(f"/media/{data['key']}")

    stored = media_root() / data["key"]
    assert stored.exists()
    with Image.open(stored) as img:
        assert img.format == "WEBP"


def test_upload_requires_chef(client, user_headers):
    res = client.post(
        "/api/v1/recipes/upload-image",
        files={"image": ("dish.png", _image_bytes(), "image/png")},
        headers=user_headers,
    )
    assert res.status_code == 403


def test_upload_rejects_wrong_content_type(client, chef_headers):
    res = client.post(
        "/api/v1/recipes/upload-image",
        files={"image": ("dish.gif", b"GIF89a...", "image/gif")},
        headers=chef_headers,
    )
    assert res.status_code == 400
    assert res.json()["message"].startswith("Invalid file type")


@pytest.mark.parametrize("size, message", [
    ((200, 200), "Image too small"),
    ((4200, 3000), "Image too large"),
])
def test_dimension_limits(size, message):
    with pytest.raises(ValidationFailed, match=message):
        image_upload.validate_image(_image_bytes(size), "image/png")


def test_decompression_bomb_rejected_as_too_large(client, chef_headers):
    buf = io.BytesIO()
    Image.new("1", (15000, 15000)).save(buf, format="PNG")
    assert len(buf.getvalue()) < image_upload.MAX_BYTES

    res = client.post(
        "/api/v1/recipes/upload-image",
        files={"image": ("bomb.png", buf.getvalue(), "image/png")},
        headers=chef_headers,
    )
    assert res.status_code == 400
    assert res.json()["message"].startswith("Image too large")


def test_oversized_dimensions_rejected_before_decoding(monkeypatch):
    data = _image_bytes((4500, 3000))

    def fail_load(self):
        raise AssertionError("pixels decoded")

    monkeypatch.setattr(ImageFile.ImageFile, "load", fail_load)
    with pytest.raises(ValidationFailed, match="Image too large"):
        image_upload.validate_image(data, "image/png")


def test_corrupt_image_rejected():
    with pytest.raises(ValidationFailed, match="Invalid image file"):
        image_upload.validate_image(b"\x89PNG not really", "image/png")


def test_oversized_file_rejected():
    with pytest.raises(ValidationFailed, match="File too large"):
        image_upload.validate_image(b"0" * (image_upload.MAX_BYTES + 1), "image/jpeg")


def test_format_checked_even_with_allowed_content_type():
    gif = _image_bytes(fmt="GIF", mode="L")
    with pytest.raises(ValidationFailed, match="Invalid file type"):
        image_upload.validate_image(gif, "image/png")


def test_palette_images_are_converted():
    img = Image.new("P", (500, 400))
    data = image_upload.to_webp(img)
    with Image.open(io.BytesIO(data)) as out:
        assert out.format == "WEBP"


def test_local_store_roundtrip_and_traversal(tmp_path):
    store = LocalStore(tmp_path)
    result = store.put_bytes(key="a/b.webp", content_type="image/webp", data=b"x")
    assert result.key == "a/b.webp"
    assert store.exists("a/b.webp")
    store.delete("a/b.webp")
    assert not store.exists("a/b.webp")

    with pytest.raises(ValueError):
        store.put_bytes(key="../escape.webp", content_type="image/webp", data=b"x")


def test_deleting_recipe_removes_its_images(client, chef, chef_headers, make_recipe):
    uploaded = client.post(
        "/api/v1/recipes/upload-image",
        files={"image": ("dish.jpg", _image_bytes(fmt="JPEG"), "image/jpeg")},
        headers=chef_headers,
    ).json()["data"]
    recipe = make_recipe(chef, status="PENDING", image_urls=[uploaded["url"], "https://elsewhere.test/x.webp"])
    assert (media_root() / uploaded["key"]).exists()

    assert client.delete(f"/api/v1/recipes/{recipe.id}", headers=chef_headers).status_code == 200
    assert not (media_root() / uploaded["key"]).exists()


def test_key_from_url():
    base = "https://cdn.example.com/recipehub-images"
    assert key_from_url(base, f"{base}/recipes/u1/a.webp") == "recipes/u1/a.webp"
    assert key_from_url(base + "/", f"{base}/recipes/u1/a.webp") == "recipes/u1/a.webp"
    assert key_from_url(base, "https://other.example.com/recipes/u1/a.webp") is None
    assert key_from_url(base, f"{base}/") is None
