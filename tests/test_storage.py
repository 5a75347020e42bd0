from datetime import date

import pytest

from app.services.errors import StorageError
from app.services.realtime import ChangeEvent, ChangeHandlers, ChannelStatus, RealtimeBroker
from app.services.storage import StorageResult


def activity(title: str = "Health talk", **overrides) -> dict:
    values = {"title": title, "type": "Outreach", "date": date(2024, 2, 10), "submitted_by": "nurse@nakuru.go.ke"}
    values.update(overrides)
    return values


class Recorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []
        self.statuses: list[ChannelStatus] = []

    def handlers(self) -> ChangeHandlers:
        return ChangeHandlers(
            on_insert=lambda p: self.events.append((ChangeEvent.INSERT.value, p)),
            on_update=lambda p: self.events.append((ChangeEvent.UPDATE.value, p)),
            on_delete=lambda p: self.events.append((ChangeEvent.DELETE.value, p)),
        )


class TestStorage:
    @pytest.mark.asyncio
    async def test_insert_assigns_id_and_timestamp(self, ctx):
        row = (await ctx.storage.insert("activities", activity())).unwrap()
        assert len(row["id"]) == 36
        assert row["created_at"] is not None
        assert row["type"] == "Outreach"

    @pytest.mark.asyncio
    async def test_select_filters_order_limit(self, ctx):
        await ctx.storage.insert("activities", activity("a", submitted_by="a@nakuru.go.ke"))
        await ctx.storage.insert("activities", activity("b", submitted_by="b@nakuru.go.ke"))
        await ctx.storage.insert("activities", activity("c", submitted_by="a@nakuru.go.ke"))
        mine = (await ctx.storage.select("activities", filters={"submitted_by": "a@nakuru.go.ke"}, order="title")).unwrap()
        assert [r["title"] for r in mine] == ["a", "c"]
        several = (await ctx.storage.select("activities", filters={"title": ["a", "b"]})).unwrap()
        assert len(several) == 2
        limited = (await ctx.storage.select("activities", order="-title", limit=1)).unwrap()
        assert [r["title"] for r in limited] == ["c"]

    @pytest.mark.asyncio
    async def test_unknown_column_is_an_error_result(self, ctx):
        result = await ctx.storage.select("activities", filters={"colour": "red"})
        assert result.ok is False
        assert "colour" in result.error
        with pytest.raises(StorageError):
            result.unwrap()

    @pytest.mark.asyncio
    async def test_unique_violation_message(self, ctx):
        await ctx.storage.insert("activity_types", {"name": "Training"})
        result = await ctx.storage.insert("activity_types", {"name": "Training"})
        assert result.ok is False
        assert result.error == "A record with these details already exists"

    @pytest.mark.asyncio
    async def test_update_and_delete_missing_row(self, ctx):
        assert (await ctx.storage.update("activities", "missing", {"title": "x"})).data is None
        assert (await ctx.storage.delete("activities", "missing")).data is None

    @pytest.mark.asyncio
    async def test_delete_before(self, ctx):
        await ctx.storage.insert("activities", activity("old", date=date(2020, 1, 1)))
        await ctx.storage.insert("activities", activity("new", date=date(2024, 1, 1)))
        removed = (await ctx.storage.delete_before("activities", "date", date(2023, 1, 1))).unwrap()
        assert removed == 1
        remaining = (await ctx.storage.select("activities")).unwrap()
        assert [r["title"] for r in remaining] == ["new"]

    def test_unwrap_ok(self):
        assert StorageResult(ok=True, data=[1]).unwrap() == [1]


class TestChangeEvents:
    @pytest.mark.asyncio
    async def test_writes_are_published_after_commit(self, ctx):
        recorder = Recorder()
        channel = ctx.broker.channel("test")
        assert channel.subscribe("activities", recorder.handlers()) == ChannelStatus.CONNECTED

        row = (await ctx.storage.insert("activities", activity())).unwrap()
        await ctx.storage.update("activities", row["id"], {"duration": 40})
        await ctx.storage.delete("activities", row["id"])
        await ctx.storage.insert("activity_types", {"name": "Training"})

        assert [e for e, _ in recorder.events] == ["INSERT", "UPDATE", "DELETE"]
        assert recorder.events[1][1]["duration"] == 40
        assert recorder.events[2][1]["id"] == row["id"]
        channel.unsubscribe()

    @pytest.mark.asyncio
    async def test_failed_write_publishes_nothing(self, ctx):
        recorder = Recorder()
        channel = ctx.broker.channel("test")
        channel.subscribe("activity_types", recorder.handlers())
        await ctx.storage.insert("activity_types", {"name": "Training"})
        await ctx.storage.insert("activity_types", {"name": "Training"})
        assert len(recorder.events) == 1
        channel.unsubscribe()


@pytest.fixture
def broker() -> RealtimeBroker:
    return RealtimeBroker()


class TestBroker:
    def test_subscribe_fails_when_unavailable(self, broker):
        recorder = Recorder()
        broker.set_available(False)
        channel = broker.channel("test")
        status = channel.subscribe("activities", recorder.handlers(), on_status=recorder.statuses.append)
        assert status == ChannelStatus.ERROR
        assert recorder.statuses == [ChannelStatus.CONNECTING, ChannelStatus.ERROR]
        assert broker.subscriber_count == 0

    def test_outage_drops_subscribers_with_error(self, broker):
        recorder = Recorder()
        channel = broker.channel("test")
        channel.subscribe("activities", recorder.handlers(), on_status=recorder.statuses.append)
        broker.set_available(False)
        assert recorder.statuses[-1] == ChannelStatus.ERROR
        assert broker.subscribers_for("activities") == []

    def test_unsubscribe_is_silent(self, broker):
        recorder = Recorder()
        channel = broker.channel("test")
        channel.subscribe("activities", recorder.handlers(), on_status=recorder.statuses.append)
        channel.unsubscribe()
        assert recorder.statuses == [ChannelStatus.CONNECTING, ChannelStatus.CONNECTED]
        assert channel.status == ChannelStatus.CLOSED

    def test_handler_error_is_contained(self, broker):
        def boom(_payload):
            raise RuntimeError("handler bug")

        channel = broker.channel("test")
        channel.subscribe("activities", ChangeHandlers(on_insert=boom, on_update=boom, on_delete=boom))
        broker.publish("activities", ChangeEvent.INSERT, {"id": "x"})
        assert channel.status == ChannelStatus.CONNECTED
