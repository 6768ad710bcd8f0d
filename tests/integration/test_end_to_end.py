"""End-to-end tests: transform a corpus, then replay it over HTTP."""

from __future__ import annotations

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from mail_emulator.pipeline import TransformOptions, transform_corpus
from mail_emulator.replay import MessageStore, create_app
from mail_emulator.utils import synthetic_id


@pytest.fixture
def output_dir(settings):
    transform_corpus(TransformOptions.from_settings(settings), settings.output_dir)
    return settings.output_dir


@pytest.mark.integration
class TestTransformAndReplay:
    """Integration tests for the transform and replay pipeline."""

    def test_replay_serves_transformed_corpus(self, settings, output_dir) -> None:
        app = create_app(settings, data_dir=output_dir)

        with TestClient(app) as client:
            assert client.get("/ready").json()["status"] == "ready"

            listing = client.get("/gmail/v1/users/me/messages").json()
            assert listing["resultSizeEstimate"] == 3

            root_id = synthetic_id("100.allen@enron.com")
            message = client.get(f"/gmail/v1/users/me/messages/{root_id}").json()
            assert message["threadId"] == root_id
            assert message["labelIds"] == ["SENT"]

            thread = client.get(f"/gmail/v1/users/me/threads/{root_id}").json()
            assert [m["id"] for m in thread["messages"]][0] == root_id
            assert len(thread["messages"]) == 3

            sent = client.get("/gmail/v1/users/me/messages", params={"q": "in:sent"}).json()
            assert sent["resultSizeEstimate"] == 2

    def test_replay_startup_fails_without_dataset(self, settings, tmp_path) -> None:
        from mail_emulator.exceptions import ConfigurationError

        app = create_app(settings, data_dir=tmp_path / "empty")

        with pytest.raises(ConfigurationError):
            with TestClient(app):
                pass

    @pytest.mark.asyncio
    async def test_concurrent_async_clients(self, settings, output_dir) -> None:
        store = MessageStore()
        store.load(output_dir)
        app = create_app(settings, store=store)

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://replay") as client:
            ids = [m["id"] for m in (await client.get("/v1/users/me/messages")).json()["messages"]]

            rounds = 5
            listings = [client.get("/v1/users/me/messages") for _ in range(rounds)]
            fetches = [
                client.get(f"/v1/users/me/messages/{message_id}", params={"format": "metadata"})
                for _ in range(rounds)
                for message_id in ids
            ]
            responses = await asyncio.gather(*listings, *fetches)

        assert len(ids) == 3
        assert all(r.status_code == 200 for r in responses)
        for response in responses[:rounds]:
            body = response.json()
            assert body["resultSizeEstimate"] == 3
            assert [m["id"] for m in body["messages"]] == ids
        fetched = [r.json()["id"] for r in responses[rounds:]]
        assert fetched == ids * rounds
