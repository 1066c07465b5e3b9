# tests/test_movies/test_update_movie.py

import uuid

from tests.test_movies.conftest import integrity_error, owned_url


def test_patch_title_only_keeps_poster(env):
    movie = env.seed(title="Dune")
    resp = env.client.patch(f"/api/v1/movies/{movie.id}", json={"title": "Dune: Part One"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["title"] == "Dune: Part One"
    assert movie.poster == owned_url("posters/1-dune.jpg")
    env.s3.delete_object.assert_not_called()

    # redis lock + row lock
    assert env.locks.lock_calls[-1] == (f"lock:movies:update:{movie.id}", 10, 3)
    assert (movie.id, True) in env.get_calls
    assert env.db.commit_calls == 1


def test_patch_with_new_upload_deletes_replaced_poster(env):
    movie = env.seed(poster=owned_url("posters/a.jpg"))
    resp = env.client.patch(
        f"/api/v1/movies/{movie.id}",
        files={"poster": ("b.jpg", b"\xff\xd8\xff", "image/jpeg")},
    )
    assert resp.status_code == 200
    new_key = env.s3.put_object.call_args.kwargs["Key"]
    assert movie.poster == owned_url(new_key)
    assert env.deleted_keys() == ["posters/a.jpg"]


def test_patch_with_new_reference_deletes_old_owned_poster(env):
    movie = env.seed(poster=owned_url("posters/a.jpg"))
    resp = env.client.patch(f"/api/v1/movies/{movie.id}", json={"poster": owned_url("posters/b.jpg")})
    assert resp.status_code == 200
    assert env.deleted_keys() == ["posters/a.jpg"]


def test_patch_with_same_poster_deletes_nothing(env):
    movie = env.seed(poster=owned_url("posters/a.jpg"))
    resp = env.client.patch(f"/api/v1/movies/{movie.id}", json={"poster": owned_url("posters/a.jpg")})
    assert resp.status_code == 200
    env.s3.delete_object.assert_not_called()


def test_patch_from_external_poster_deletes_nothing(env):
    movie = env.seed(poster="https://images.example.com/a.jpg")
    resp = env.client.patch(f"/api/v1/movies/{movie.id}", json={"poster": owned_url("posters/b.jpg")})
    assert resp.status_code == 200
    env.s3.delete_object.assert_not_called()


def test_patch_empty_body_is_rejected(env):
    movie = env.seed()
    for kwargs in ({"json": {}}, {"content": b""}):
        resp = env.client.patch(f"/api/v1/movies/{movie.id}", **kwargs)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "No changes provided"
    assert env.db.commit_calls == 0


def test_patch_explicit_null_is_invalid(env):
    movie = env.seed()
    resp = env.client.patch(f"/api/v1/movies/{movie.id}", json={"title": None})
    assert resp.status_code == 422


def test_patch_unknown_movie_is_404(env):
    resp = env.client.patch(f"/api/v1/movies/{uuid.uuid4()}", json={"title": "Anything"})
    assert resp.status_code == 404
    env.s3.put_object.assert_not_called()


def test_patch_to_taken_title_is_conflict(env):
    env.seed(title="Alien")
    movie = env.seed(title="Aliens")
    resp = env.client.patch(f"/api/v1/movies/{movie.id}", json={"title": "alien"})
    assert resp.status_code == 409
    assert movie.title == "Aliens"


def test_patch_keeping_own_title_with_different_case_is_allowed(env):
    movie = env.seed(title="Alien")
    resp = env.client.patch(f"/api/v1/movies/{movie.id}", json={"title": "ALIEN"})
    assert resp.status_code == 200
    assert resp.json()["title"] == "ALIEN"


def test_patch_commit_race_removes_fresh_upload_and_keeps_old_poster(env):
    movie = env.seed(poster=owned_url("posters/a.jpg"))
    env.db.fail_commit_with = integrity_error()
    resp = env.client.patch(
        f"/api/v1/movies/{movie.id}",
        data={"title": "Taken Meanwhile"},
        files={"poster": ("b.jpg", b"\xff\xd8\xff", "image/jpeg")},
    )
    assert resp.status_code == 409
    assert env.db.rollback_calls == 1
    new_key = env.s3.put_object.call_args.kwargs["Key"]
    assert env.deleted_keys() == [new_key]


def test_patch_year_out_of_range_is_422(env):
    movie = env.seed()
    assert env.client.patch(f"/api/v1/movies/{movie.id}", json={"publishingYear": 1700}).status_code == 422
