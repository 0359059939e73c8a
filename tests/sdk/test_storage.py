"""Tests for SDK Storage functions."""

from unittest.mock import Mock

from workout_tracker.sdk import storage


def _client():
    client = Mock()
    client.bucket = "demo.appspot.com"
    return client


class TestUpload:
    def test_returns_tokenized_download_url(self):
        client = _client()
        client.make_request.return_value = {"downloadTokens": "tok-1,tok-2"}

        url = storage.upload(client, "profile_pictures/user-1.jpg", b"jpeg")

        assert url == (
            "https://firebasestorage.googleapis.com/v0/b/demo.appspot.com/o/"
            "profile_pictures%2Fuser-1.jpg?alt=media&token=tok-1"
        )
        kwargs = client.make_request.call_args.kwargs
        assert kwargs["params"] == {"uploadType": "media", "name": "profile_pictures/user-1.jpg"}
        assert kwargs["data"] == b"jpeg"
        assert kwargs["headers"] == {"Content-Type": "image/jpeg"}

    def test_url_without_token(self):
        assert storage.download_url(_client(), "a/b.jpg").endswith("a%2Fb.jpg?alt=media")


class TestDownload:
    def test_returns_bytes(self):
        client = _client()
        client.make_request.return_value = Mock(content=b"jpeg")

        assert storage.download(client, "https://example.com/a.jpg") == b"jpeg"
        kwargs = client.make_request.call_args.kwargs
        assert kwargs["raw"] is True
        assert kwargs["require_auth"] is False
