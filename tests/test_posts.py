from conftest import API, auth_headers


async def test_timeline_newest_first_with_authors(client, learner, community):
    url = f"{API}/communities/{community['community_id']}/posts"
    for n in range(12):
        response = await client.post(url, json={"content": f"post {n}"}, headers=auth_headers(learner))
        assert response.status_code == 201

    body = (await client.get(url)).json()
    # timeline pages default to 10
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 12}
    assert body["data"][0]["author"]["name"] == "Lee Learner"
    assert "email" not in body["data"][0]["author"]

    page_two = (await client.get(f"{url}?page=2")).json()
    assert page_two["count"] == 2


async def test_post_needs_existing_community(client, learner):
    response = await client.post(
        f"{API}/communities/COM_MISSING/posts",
        json={"content": "hello"},
        headers=auth_headers(learner),
    )
    assert response.status_code == 404


async def test_edit_rights(client, learner, make_user, publisher, community):
    url = f"{API}/communities/{community['community_id']}/posts"
    post = (await client.post(url, json={"content": "first!"}, headers=auth_headers(learner))).json()["data"]
    stranger = await make_user()

    response = await client.put(f"{url}/{post['post_id']}", json={"content": "mine now"}, headers=auth_headers(stranger))
    assert response.status_code == 403

    response = await client.put(
        f"{url}/{post['post_id']}",
        json={"attachments": ["https://cdn.example.com/a.png"]},
        headers=auth_headers(learner),
    )
    data = response.json()["data"]
    assert data["content"] == "first!"
    assert data["attachments"] == ["https://cdn.example.com/a.png"]

    # the community owner moderates
    response = await client.delete(f"{url}/{post['post_id']}", headers=auth_headers(publisher))
    assert response.status_code == 200
    assert (await client.get(url)).json()["data"] == []
