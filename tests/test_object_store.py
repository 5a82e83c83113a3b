from __future__ import annotations

import io

import pytest
from botocore.exceptions import ClientError

from shared.asset_fetcher import fetch_asset, parse_data_url
from shared.files import normalize_key, safe_name
from shared.object_store import (
    CACHE_CONTROL,
    LocalObjectStore,
    ObjectNotFoundError,
    SpacesObjectStore,
    build_object_store,
)
from conftest import png_bytes, png_data_url


class FakeS3Client:
    def __init__(self):
        self.objects: dict[str, dict] = {}

    def put_object(self, **kwargs):
        self.objects[kwargs["Key"]] = kwargs

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        stored = self.objects[Key]
        return {"Body": io.BytesIO(stored["Body"]), "ContentType": stored["ContentType"]}


class TestKeys:
    def test_normalize(self):
        assert normalize_key("/media/orders/a.png") == "media/orders/a.png"
        assert normalize_key("media\\orders\\a.png") == "media/orders/a.png"

    @pytest.mark.parametrize("key", ["", "/", "media/../secrets", "media//a.png", "./a.png"])
    def test_rejects_escapes(self, key):
        with pytest.raises(ValueError):
            normalize_key(key)

    def test_safe_name(self):
        assert safe_name("Open Sans") == "Open_Sans"
        assert safe_name("...", fallback="font") == "font"


class TestLocalObjectStore:
    def test_round_trip(self, tmp_path):
        store = LocalObjectStore(tmp_path / "objects")
        store.put("media/orders/ORD-1/item-0/front-1.png", png_bytes(), "image/png")
        stored = store.get("/media/orders/ORD-1/item-0/front-1.png")
        assert stored.data == png_bytes()
        assert stored.content_type == "image/png"
        assert stored.key == "media/orders/ORD-1/item-0/front-1.png"

    def test_missing(self, tmp_path):
        with pytest.raises(ObjectNotFoundError):
            LocalObjectStore(tmp_path).get("media/nothing.png")

    def test_traversal(self, tmp_path):
        store = LocalObjectStore(tmp_path / "objects")
        with pytest.raises(ValueError):
            store.put("../escape.png", b"x", "image/png")
        with pytest.raises(ValueError):
            store.get("media/../../etc/passwd")


class TestSpacesObjectStore:
    def test_put_and_get(self):
        client = FakeS3Client()
        store = SpacesObjectStore("https://fra1.example.com", "fra1", "k", "s", "bucket", client=client)
        store.put("/media/a.png", b"data", "image/jpeg")
        sent = client.objects["media/a.png"]
        assert sent["Bucket"] == "bucket"
        assert sent["CacheControl"] == CACHE_CONTROL
        stored = store.get("media/a.png")
        assert stored.data == b"data"
        assert stored.content_type == "image/jpeg"

    def test_missing_key(self):
        store = SpacesObjectStore("https://fra1.example.com", "fra1", "k", "s", "bucket", client=FakeS3Client())
        with pytest.raises(ObjectNotFoundError):
            store.get("media/none.png")


class TestBuildObjectStore:
    def test_local_without_credentials(self, tmp_path):
        assert isinstance(build_object_store(tmp_path, endpoint="https://fra1.example.com"), LocalObjectStore)

    def test_spaces_when_configured(self, tmp_path):
        store = build_object_store(
            tmp_path,
            endpoint="https://fra1.digitaloceanspaces.com",
            access_key="key",
            secret_key="secret",
            bucket="apparel-media",
        )
        assert isinstance(store, SpacesObjectStore)
        assert store.bucket == "apparel-media"


class TestAssetFetcher:
    def test_parse_data_url(self):
        data, mime = parse_data_url(png_data_url())
        assert data == png_bytes()
        assert mime == "image/png"
        assert parse_data_url("data:text/plain,hello") == (b"hello", "text/plain")
        with pytest.raises(ValueError):
            parse_data_url("https://example.com/a.png")

    def test_data_url_cached_by_content(self, tmp_path):
        first = fetch_asset(png_data_url(), tmp_path)
        second = fetch_asset(png_data_url(), tmp_path)
        assert first == second
        assert first.suffix == ".png"
        assert first.read_bytes() == png_bytes()

    def test_local_path_and_missing(self, tmp_path):
        path = tmp_path / "art.png"
        path.write_bytes(png_bytes())
        assert fetch_asset(str(path), tmp_path / "cache") == path
        with pytest.raises(FileNotFoundError):
            fetch_asset(str(tmp_path / "nope.png"), tmp_path / "cache")
        with pytest.raises(ValueError):
            fetch_asset("  ", tmp_path / "cache")
