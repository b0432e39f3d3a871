from tests.conftest import register

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 128


async def test_upload_image_and_fetch_it(client, file_storage):
    await register(client)

    response = await client.post("/upload", files={"file": ("cover.png", PNG, "image/png")})

    assert response.status_code == 201
    url = response.json()["url"]
    assert url.startswith("/uploads/") and url.endswith(".png")
    assert len(list(file_storage.root.iterdir())) == 1

    served = await client.get(url)
    assert served.status_code == 200
    assert served.content == PNG


async def test_upload_requires_session(client, file_storage):
    response = await client.post("/upload", files={"file": ("cover.png", PNG, "image/png")})

    assert response.status_code == 401
    assert list(file_storage.root.iterdir()) == []


async def test_oversized_upload_is_rejected(client, file_storage, settings):
    await register(client)
    data = b"\x00" * (settings.upload_max_bytes + 1)

    response = await client.post("/upload", files={"file": ("huge.png", data, "image/png")})

    assert response.status_code == 400
    assert "limit" in response.json()["message"]
    assert list(file_storage.root.iterdir()) == []


async def test_non_image_upload_is_rejected(client, file_storage):
    await register(client)

    response = await client.post("/upload", files={"file": ("notes.txt", b"plain text", "text/plain")})

    assert response.status_code == 400
    assert response.json() == {"message": "Only image files are allowed"}
    assert list(file_storage.root.iterdir()) == []


async def test_missing_file_field_is_invalid(client):
    await register(client)

    response = await client.post("/upload", data={"other": "x"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid data"


async def test_unknown_upload_is_404(client):
    assert (await client.get("/uploads/1700000000000-missing.png")).status_code == 404
