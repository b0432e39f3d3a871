from tests.conftest import post_payload, register


async def test_public_profile_hides_email(client_factory):
    client = client_factory()
    user = await register(client, "ada")
    await client.put("/auth/profile", json={"bio": "Hi there"})

    response = await client_factory().get(f"/users/{user['id']}")

    assert response.status_code == 200
    body = response.json()
    assert body["username"] == user["username"]
    assert body["bio"] == "Hi there"
    assert "email" not in body
    assert "password_hash" not in body


async def test_unknown_user_is_404(client):
    response = await client.get("/users/404")

    assert response.status_code == 404
    assert response.json() == {"message": "User not found"}


async def test_user_posts_include_drafts_only_for_owner(client_factory):
    author = client_factory()
    user = await register(author, "author")
    await author.post("/posts", json=post_payload(title="Live"))
    await author.post("/posts", json=post_payload(title="Draft", published=False))

    own = (await author.get(f"/users/{user['id']}/posts")).json()
    public = (await client_factory().get(f"/users/{user['id']}/posts")).json()

    assert {p["title"] for p in own} == {"Live", "Draft"}
    assert [p["title"] for p in public] == ["Live"]


async def test_follow_and_unfollow(client_factory):
    ada_client, bob_client = client_factory(), client_factory()
    ada = await register(ada_client, "ada")
    bob = await register(bob_client, "bob")

    response = await ada_client.post(f"/users/{bob['id']}/follow")
    assert response.status_code == 200
    assert response.json() == {"user_id": bob["id"], "following": True}

    again = await ada_client.post(f"/users/{bob['id']}/follow")
    assert again.status_code == 200

    followers = (await bob_client.get(f"/users/{bob['id']}/followers")).json()
    following = (await bob_client.get(f"/users/{ada['id']}/following")).json()
    assert [u["id"] for u in followers] == [ada["id"]]
    assert [u["id"] for u in following] == [bob["id"]]
    assert "email" not in followers[0]

    response = await ada_client.delete(f"/users/{bob['id']}/follow")
    assert response.json() == {"user_id": bob["id"], "following": False}
    assert (await bob_client.get(f"/users/{bob['id']}/followers")).json() == []


async def test_self_follow_is_rejected_before_storage(client, api_storage, monkeypatch):
    user = await register(client)

    async def unexpected(*args, **kwargs):
        raise AssertionError("storage must not be reached")

    monkeypatch.setattr(api_storage, "create_follow", unexpected)

    response = await client.post(f"/users/{user['id']}/follow")

    assert response.status_code == 400
    assert response.json() == {"message": "Cannot follow yourself"}


async def test_follow_unknown_user_is_404(client):
    await register(client)

    assert (await client.post("/users/999/follow")).status_code == 404


async def test_follow_requires_session(client_factory):
    user = await register(client_factory())

    assert (await client_factory().post(f"/users/{user['id']}/follow")).status_code == 401


async def test_categories_and_tags(client_factory):
    client = client_factory()
    await register(client)

    for name in ("Science", "Art"):
        response = await client.post("/categories", json={"name": name, "description": f"All about {name}"})
        assert response.status_code == 201
    assert (await client.post("/tags", json={"name": "python"})).status_code == 201

    anonymous = client_factory()
    categories = (await anonymous.get("/categories")).json()
    tags = (await anonymous.get("/tags")).json()

    assert [c["name"] for c in categories] == ["Art", "Science"]
    assert categories[0]["description"] == "All about Art"
    assert [t["name"] for t in tags] == ["python"]


async def test_taxonomy_validation_and_conflicts(client_factory):
    client = client_factory()
    await register(client)
    await client.post("/tags", json={"name": "python"})

    assert (await client.post("/tags", json={"name": "python"})).status_code == 409
    assert (await client.post("/tags", json={"name": "   "})).status_code == 400
    assert (await client.post("/categories", json={"name": ""})).status_code == 400
    assert (await client_factory().post("/tags", json={"name": "anon"})).status_code == 401
