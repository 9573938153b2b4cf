from conftest import API, auth_headers


async def average_rating(client, community):
    response = await client.get(f"{API}/communities/{community['community_id']}")
    return response.json()["data"]["average_rating"]


async def test_rating_follows_every_write(client, make_user, community):
    first, second = await make_user(), await make_user()
    url = f"{API}/communities/{community['community_id']}/reviews"

    response = await client.post(url, json={"title": "Great", "text": "Loved it", "rating": 8}, headers=auth_headers(first))
    assert response.status_code == 201
    eight = response.json()["data"]
    assert await average_rating(client, community) == 8

    await client.post(url, json={"title": "Meh", "text": "Okay", "rating": 4}, headers=auth_headers(second))
    assert await average_rating(client, community) == 6

    response = await client.delete(f"{API}/reviews/{eight['review_id']}", headers=auth_headers(first))
    assert response.status_code == 200
    assert await average_rating(client, community) == 4


async def test_one_review_per_user(client, learner, community):
    url = f"{API}/communities/{community['community_id']}/reviews"
    body = {"title": "Nice", "text": "Good stuff", "rating": 7}

    assert (await client.post(url, json=body, headers=auth_headers(learner))).status_code == 201
    response = await client.post(url, json=body, headers=auth_headers(learner))
    assert response.status_code == 409
    assert response.json()["code"] == "conflict"


async def test_rating_bounds(client, learner, community):
    url = f"{API}/communities/{community['community_id']}/reviews"
    for rating in (0, 11):
        response = await client.post(url, json={"title": "t", "text": "t", "rating": rating}, headers=auth_headers(learner))
        assert response.status_code == 400


async def test_only_author_or_admin_edits(client, learner, make_user, admin, community):
    url = f"{API}/communities/{community['community_id']}/reviews"
    review = (await client.post(url, json={"title": "t", "text": "t", "rating": 9}, headers=auth_headers(learner))).json()["data"]
    stranger = await make_user()

    response = await client.put(f"{API}/reviews/{review['review_id']}", json={"rating": 1}, headers=auth_headers(stranger))
    assert response.status_code == 403

    response = await client.put(f"{API}/reviews/{review['review_id']}", json={"rating": 5}, headers=auth_headers(admin))
    assert response.json()["data"]["rating"] == 5
    assert await average_rating(client, community) == 5


async def test_review_for_missing_community(client, learner):
    response = await client.post(
        f"{API}/communities/COM_MISSING/reviews",
        json={"title": "t", "text": "t", "rating": 5},
        headers=auth_headers(learner),
    )
    assert response.status_code == 404


async def test_list_reviews(client, learner, community):
    await client.post(
        f"{API}/communities/{community['community_id']}/reviews",
        json={"title": "t", "text": "t", "rating": 5},
        headers=auth_headers(learner),
    )

    body = (await client.get(f"{API}/reviews")).json()
    assert body["pagination"]["total"] == 1

    review_id = body["data"][0]["review_id"]
    data = (await client.get(f"{API}/reviews/{review_id}")).json()["data"]
    assert data["community"]["name"] == "Python Guild"
