from __future__ import annotations

from src.storage.models import Article
from tests.uploads.conftest import (
    PNG_BYTES,
    build_zip,
    create_upload_test_context,
    leftover_temp_entries,
    seed_article,
    teardown_upload_test_context,
)


def test_uploadable_articles_excludes_published(monkeypatch, tmp_path) -> None:
    context = create_upload_test_context(monkeypatch, tmp_path)
    try:
        draft_id = seed_article(context.session_factory, title="Draft piece", status="draft")
        pending_id = seed_article(context.session_factory, title="Pending piece", status="pending")
        seed_article(context.session_factory, title="Live piece", status="published")

        response = context.client.get("/articles/uploadable")

        assert response.status_code == 200
        payload = response.json()
        assert {item["id"] for item in payload} == {draft_id, pending_id}
        assert set(payload[0].keys()) == {"id", "title", "status"}
    finally:
        teardown_upload_test_context(context)


def test_token_free_image_upload_round_trip(monkeypatch, tmp_path) -> None:
    context = create_upload_test_context(monkeypatch, tmp_path)
    try:
        article_id = seed_article(context.session_factory)

        response = context.client.post(
            "/public-upload/image",
            data={"articleId": str(article_id)},
            files={"file": ("cover.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 200
        payload = response.json()
        assert payload["success"] is True
        assert payload["message"] == "Main image uploaded successfully"
        assert payload["article"] == {"id": article_id, "title": "Spring launch notes"}
        assert "uploadsRemaining" not in payload
        with context.session_factory() as session:
            assert session.get(Article, article_id).image_url == payload["imageUrl"]
        assert response.headers["x-rate-limit-limit"] == "10"
        assert leftover_temp_entries(context.temp_dir) == []
    finally:
        teardown_upload_test_context(context)


def test_token_free_instagram_upload_writes_secondary_image(monkeypatch, tmp_path) -> None:
    context = create_upload_test_context(monkeypatch, tmp_path)
    try:
        article_id = seed_article(context.session_factory)

        response = context.client.post(
            "/public-upload/instagram-image",
            data={"articleId": str(article_id)},
            files={"file": ("square.jpg", PNG_BYTES, "image/jpeg")},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Instagram image uploaded successfully"
        with context.session_factory() as session:
            article = session.get(Article, article_id)
            assert article.instagram_image_url == response.json()["imageUrl"]
            assert article.image_url == ""
    finally:
        teardown_upload_test_context(context)


def test_token_free_html_zip_upload(monkeypatch, tmp_path) -> None:
    context = create_upload_test_context(monkeypatch, tmp_path)
    try:
        article_id = seed_article(context.session_factory)

        response = context.client.post(
            "/public-upload/html-zip",
            data={"articleId": str(article_id)},
            files={"file": ("site.zip", build_zip({"foo.html": "<p>foo</p>", "index.html": "<p>index</p>"}), "application/zip")},
        )

        assert response.status_code == 200
        payload = response.json()
        assert payload["message"] == "HTML ZIP uploaded and processed successfully"
        assert payload["result"]["sourceFile"] == "index.html"
        with context.session_factory() as session:
            article = session.get(Article, article_id)
            assert article.content == "<p>index</p>"
            assert article.content_format == "html"
        assert leftover_temp_entries(context.temp_dir) == []
    finally:
        teardown_upload_test_context(context)


def test_corrupt_zip_returns_500_and_cleans_up(monkeypatch, tmp_path) -> None:
    context = create_upload_test_context(monkeypatch, tmp_path)
    try:
        article_id = seed_article(context.session_factory)

        response = context.client.post(
            "/public-upload/html-zip",
            data={"articleId": str(article_id)},
            files={"file": ("site.zip", b"PK-not-really", "application/zip")},
        )

        assert response.status_code == 500
        assert response.json() == {"message": "The uploaded file is not a valid ZIP archive"}
        assert leftover_temp_entries(context.temp_dir) == []
        with context.session_factory() as session:
            assert session.get(Article, article_id).content == ""
    finally:
        teardown_upload_test_context(context)


def test_published_article_is_rejected(monkeypatch, tmp_path) -> None:
    context = create_upload_test_context(monkeypatch, tmp_path)
    try:
        article_id = seed_article(context.session_factory, status="published")

        response = context.client.post(
            "/public-upload/image",
            data={"articleId": str(article_id)},
            files={"file": ("cover.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 400
        assert response.json() == {"message": "Cannot upload to published articles"}
        assert leftover_temp_entries(context.temp_dir) == []
    finally:
        teardown_upload_test_context(context)


def test_request_validation_errors(monkeypatch, tmp_path) -> None:
    context = create_upload_test_context(monkeypatch, tmp_path)
    try:
        article_id = seed_article(context.session_factory)

        missing_id = context.client.post(
            "/public-upload/image",
            files={"file": ("cover.png", PNG_BYTES, "image/png")},
        )
        assert missing_id.status_code == 400
        assert missing_id.json() == {"message": "Valid article ID is required"}

        unknown_article = context.client.post(
            "/public-upload/image",
            data={"articleId": "9999"},
            files={"file": ("cover.png", PNG_BYTES, "image/png")},
        )
        assert unknown_article.status_code == 404
        assert unknown_article.json() == {"message": "Article not found"}

        wrong_type = context.client.post(
            "/public-upload/image",
            data={"articleId": str(article_id)},
            files={"file": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert wrong_type.status_code == 400
        assert "Only JPEG, PNG, GIF, and WebP" in wrong_type.json()["message"]

        missing_file = context.client.post("/public-upload/image", data={"articleId": str(article_id)})
        assert missing_file.status_code == 400
        assert missing_file.json() == {"message": "No file uploaded"}
    finally:
        teardown_upload_test_context(context)


def test_rate_limit_rejects_eleventh_attempt(monkeypatch, tmp_path) -> None:
    context = create_upload_test_context(monkeypatch, tmp_path)
    try:
        statuses = [
            context.client.post("/public-upload/image", data={"articleId": "nope"}).status_code
            for _ in range(10)
        ]
        assert statuses == [400] * 10

        blocked = context.client.post("/public-upload/image", data={"articleId": "nope"})
        assert blocked.status_code == 429
        assert blocked.json() == {"message": "Too many upload attempts from this IP, please try again later."}
        assert blocked.headers["x-rate-limit-remaining"] == "0"
        assert "retry-after" in blocked.headers

        other_client = context.client.post(
            "/public-upload/image",
            data={"articleId": "nope"},
            headers={"X-Forwarded-For": "198.51.100.4, 10.0.0.1"},
        )
        assert other_client.status_code == 400
    finally:
        teardown_upload_test_context(context)


def test_rate_limit_can_be_disabled(monkeypatch, tmp_path) -> None:
    context = create_upload_test_context(
        monkeypatch,
        tmp_path,
        env={"UPLOAD_RATE_LIMIT_ENABLED": "false", "UPLOAD_RATE_LIMIT_MAX_ATTEMPTS": "1"},
    )
    try:
        for _ in range(3):
            response = context.client.post("/public-upload/image", data={"articleId": "nope"})
            assert response.status_code == 400
        assert "x-rate-limit-limit" not in response.headers
    finally:
        teardown_upload_test_context(context)


def test_unexpected_errors_become_generic_500(monkeypatch, tmp_path) -> None:
    context = create_upload_test_context(monkeypatch, tmp_path)
    try:
        article_id = seed_article(context.session_factory)

        def crash(*args, **kwargs):
            raise OSError("/srv/secret/path exploded")

        monkeypatch.setattr("src.uploads.router.run_upload", crash)

        response = context.client.post(
            "/public-upload/html-zip",
            data={"articleId": str(article_id)},
            files={"file": ("site.zip", build_zip({"index.html": "<p>x</p>"}), "application/zip")},
        )

        assert response.status_code == 500
        assert response.json() == {"message": "Failed to process HTML ZIP upload"}
        assert leftover_temp_entries(context.temp_dir) == []
    finally:
        teardown_upload_test_context(context)
