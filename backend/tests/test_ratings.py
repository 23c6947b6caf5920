"""
Tests for reviews and the rating aggregator.
"""

import pytest
from httpx import AsyncClient

from app.services.background import task_runner
from app.models.review import Review
from app.services.rating_service import recompute_rating


async def review(client: AsyncClient, headers: dict, path: str, rating: int):
    response = await client.post(path, json={"rating": rating, "content": "Great place"}, headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_rating_tracks_reviews(client: AsyncClient, db_session, facility, user_factory, token_headers):
    reviewers = [await user_factory(f"r{i}@example.com", f"Reviewer {i}") for i in range(3)]
    path = f"/api/v1/facilities/{facility.id}/reviews"
    created = [await review(client, token_headers(user), path, rating) for user, rating in zip(reviewers, [4, 5, 3])]
    await task_runner.drain()

    await db_session.refresh(facility)
    assert facility.rating == 4.0
    assert facility.review_count == 3

    response = await client.delete(f"/api/v1/reviews/{created[2]['id']}", headers=token_headers(reviewers[2]))
    assert response.status_code == 204
    await task_runner.drain()

    await db_session.refresh(facility)
    assert facility.rating == 4.5
    assert facility.review_count == 2

    for user, item in zip(reviewers[:2], created[:2]):
        await client.delete(f"/api/v1/reviews/{item['id']}", headers=token_headers(user))
    await task_runner.drain()

    await db_session.refresh(facility)
    assert facility.rating == 0
    assert facility.review_count == 0


@pytest.mark.asyncio
async def test_rating_rounds_to_one_decimal(db_session, facility, user_factory):
    reviewers = [await user_factory(f"d{i}@example.com", f"D {i}") for i in range(3)]
    for user, rating in zip(reviewers, [5, 5, 4]):
        db_session.add(Review(user_id=user.id, facility_id=facility.id, rating=rating, content="ok"))
    await db_session.flush()

    await recompute_rating(db_session, "facility", facility.id)
    await db_session.commit()
    await db_session.refresh(facility)
    assert facility.rating == 4.7
    assert facility.review_count == 3


@pytest.mark.asyncio
async def test_trainer_reviews_update_trainer_only(client: AsyncClient, db_session, auth_headers, facility, trainer):
    await review(client, auth_headers, f"/api/v1/trainers/{trainer.id}/reviews", 5)
    await task_runner.drain()

    await db_session.refresh(trainer)
    await db_session.refresh(facility)
    assert trainer.rating == 5.0
    assert trainer.review_count == 1
    assert facility.review_count == 0


@pytest.mark.asyncio
async def test_duplicate_review_rejected(client: AsyncClient, auth_headers, facility, trainer):
    path = f"/api/v1/facilities/{facility.id}/reviews"
    await review(client, auth_headers, path, 4)

    again = await client.post(path, json={"rating": 2, "content": "Changed my mind"}, headers=auth_headers)
    assert again.status_code == 409
    assert again.json() == {"detail": "You have already reviewed this facility"}

    # A facility review does not block reviewing a trainer
    await review(client, auth_headers, f"/api/v1/trainers/{trainer.id}/reviews", 4)


@pytest.mark.asyncio
async def test_review_validation(client: AsyncClient, auth_headers, facility):
    path = f"/api/v1/facilities/{facility.id}/reviews"
    out_of_range = await client.post(path, json={"rating": 6, "content": "Too good"}, headers=auth_headers)
    assert out_of_range.status_code == 400

    missing = await client.post("/api/v1/facilities/9999/reviews", json={"rating": 3, "content": "?"}, headers=auth_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_only_author_or_admin_deletes_review(
    client: AsyncClient, auth_headers, other_headers, admin_headers, facility
):
    created = await review(client, auth_headers, f"/api/v1/facilities/{facility.id}/reviews", 4)
    url = f"/api/v1/reviews/{created['id']}"

    assert (await client.delete(url, headers=other_headers)).status_code == 403
    assert (await client.delete(url, headers=admin_headers)).status_code == 204
    assert (await client.delete(url, headers=admin_headers)).status_code == 404
