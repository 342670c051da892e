"""
Tests for the upload coordinator: chunking, ordering, progress, failures
and cancellation, driven through in-memory fakes.
"""

import asyncio
import io
import math
import os
import uuid

import pytest

from corpus_uploader.coordinator import CancellationToken, UploadCoordinator
from corpus_uploader.errors import ChunkUploadError, EmptyFileError, FinalizeError, UploadCancelledError

MiB = 1024 * 1024


class FakeTransport:
    """Records every chunk it is handed; optionally fails on one index."""

    def __init__(self, events=None, fail_at=None, delay=False):
        self.calls = []
        self.aborted = []
        self.events = events if events is not None else []
        self.fail_at = fail_at
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def send_chunk(self, data, filename, index, total_chunks, session_id):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(0)
            self.calls.append({
                "data": data,
                "filename": filename,
                "index": index,
                "total_chunks": total_chunks,
                "session_id": session_id,
            })
            self.events.append(("chunk", index))
            if self.fail_at == index:
                raise ChunkUploadError("Disk quota exceeded", status_code=507, chunk_index=index)
            return {"status": "ok", "chunk_index": index}
        finally:
            self.in_flight -= 1

    async def abort(self, session_id):
        self.aborted.append(session_id)
        return True


class FakeFinalizer:
    def __init__(self, record, events=None, error=None):
        self.record = record
        self.calls = []
        self.events = events if events is not None else []
        self.error = error

    async def finalize(self, session_id, filename, total_chunks, metadata):
        self.calls.append({
            "session_id": session_id,
            "filename": filename,
            "total_chunks": total_chunks,
            "metadata": metadata,
        })
        self.events.append(("finalize", total_chunks))
        if self.error:
            raise self.error
        return self.record


@pytest.fixture
def events():
    return []


@pytest.fixture
def transport(events):
    return FakeTransport(events=events)


@pytest.fixture
def finalizer(events, record_factory):
    return FakeFinalizer(record_factory(), events=events)


@pytest.fixture
def coordinator(transport, finalizer):
    return UploadCoordinator(transport, finalizer, chunk_size=MiB)


class TestChunking:
    """Chunk boundaries, ordering and progress accounting."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size,chunk_size", [
        (1, 1),
        (10, 3),
        (1024, 1024),
        (1025, 1024),
        (5000, 7),
        (int(2.5 * MiB), MiB),
    ])
    async def test_chunks_cover_file_exactly_once_in_order(self, coordinator, transport, size, chunk_size, metadata):
        payload = os.urandom(size)
        progress = []

        await coordinator.upload_file_in_chunks(
            io.BytesIO(payload), metadata, chunk_size=chunk_size,
            on_progress=progress.append, filename="clip.mp4",
        )

        total = math.ceil(size / chunk_size)
        indices = [c["index"] for c in transport.calls]
        assert indices == list(range(total))
        assert all(c["total_chunks"] == total for c in transport.calls)
        assert sum(len(c["data"]) for c in transport.calls) == size
        assert b"".join(c["data"] for c in transport.calls) == payload
        assert all(len(c["data"]) == chunk_size for c in transport.calls[:-1])
        assert len(transport.calls[-1]["data"]) == size - (total - 1) * chunk_size

        assert len(progress) == total
        assert all(a < b for a, b in zip(progress, progress[1:]))
        assert progress[-1] == 100

    @pytest.mark.asyncio
    async def test_two_and_a_half_mib_file_makes_three_chunks(self, coordinator, transport, finalizer, events, metadata):
        payload = os.urandom(int(2.5 * MiB))

        record = await coordinator.upload_file_in_chunks(io.BytesIO(payload), metadata, filename="hello.mp4")

        assert [len(c["data"]) for c in transport.calls] == [MiB, MiB, MiB // 2]
        assert events == [("chunk", 0), ("chunk", 1), ("chunk", 2), ("finalize", 3)]
        assert finalizer.calls[0]["total_chunks"] == 3
        assert finalizer.calls[0]["filename"] == "hello.mp4"
        assert finalizer.calls[0]["metadata"] == metadata
        assert record is finalizer.record

    @pytest.mark.asyncio
    async def test_progress_reaches_100_before_finalize(self, coordinator, events, metadata):
        def on_progress(value):
            events.append(("progress", value))

        await coordinator.upload_file_in_chunks(
            io.BytesIO(b"x" * 30), metadata, chunk_size=10, on_progress=on_progress, filename="a.mp4",
        )

        finalize_at = events.index(("finalize", 3))
        assert events[finalize_at - 1] == ("progress", 100)
        progress_events = [e for e in events if e[0] == "progress"]
        # each progress call follows its chunk acknowledgement
        for i, event in enumerate(progress_events):
            assert events.index(event) > events.index(("chunk", i))

    @pytest.mark.asyncio
    async def test_session_id_shared_by_chunks_and_finalize(self, coordinator, transport, finalizer, metadata):
        await coordinator.upload_file_in_chunks(io.BytesIO(b"y" * 25), metadata, chunk_size=10, filename="b.mp4")

        session_ids = {c["session_id"] for c in transport.calls}
        assert len(session_ids) == 1
        session_id = session_ids.pop()
        assert finalizer.calls[0]["session_id"] == session_id
        assert uuid.UUID(session_id).version == 4

    @pytest.mark.asyncio
    async def test_chunks_are_never_sent_concurrently(self, finalizer, metadata):
        transport = FakeTransport(delay=True)
        coordinator = UploadCoordinator(transport, finalizer, chunk_size=4)

        await coordinator.upload_file_in_chunks(io.BytesIO(b"z" * 40), metadata, filename="c.mp4")

        assert transport.max_in_flight == 1
        assert len(transport.calls) == 10

    @pytest.mark.asyncio
    async def test_reads_from_path(self, coordinator, transport, finalizer, metadata, tmp_path):
        path = tmp_path / "sign.webm"
        path.write_bytes(b"a" * (MiB + 1))

        await coordinator.upload_file_in_chunks(path, metadata)

        assert [len(c["data"]) for c in transport.calls] == [MiB, 1]
        assert all(c["filename"] == "sign.webm" for c in transport.calls)
        assert finalizer.calls[0]["filename"] == "sign.webm"

    @pytest.mark.asyncio
    async def test_empty_file_rejected_before_any_call(self, coordinator, transport, finalizer, metadata):
        with pytest.raises(EmptyFileError):
            await coordinator.upload_file_in_chunks(io.BytesIO(b""), metadata, filename="empty.mp4")

        assert transport.calls == []
        assert finalizer.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chunk_size", [0, -1])
    async def test_invalid_chunk_size(self, coordinator, metadata, chunk_size):
        with pytest.raises(ValueError):
            await coordinator.upload_file_in_chunks(io.BytesIO(b"data"), metadata, chunk_size=chunk_size)


class TestFailures:
    """First failure aborts the whole sequence; nothing is retried."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fail_at", [0, 2, 4])
    async def test_chunk_failure_stops_sequence(self, finalizer, metadata, fail_at):
        transport = FakeTransport(fail_at=fail_at)
        coordinator = UploadCoordinator(transport, finalizer, chunk_size=10)
        progress = []

        with pytest.raises(ChunkUploadError) as exc_info:
            await coordinator.upload_file_in_chunks(
                io.BytesIO(b"q" * 50), metadata, on_progress=progress.append, filename="d.mp4",
            )

        assert exc_info.value.message == "Disk quota exceeded"
        assert exc_info.value.chunk_index == fail_at
        assert [c["index"] for c in transport.calls] == list(range(fail_at + 1))
        assert len(progress) == fail_at
        assert finalizer.calls == []
        # orphaned chunks are left for the server; no abort on failure
        assert transport.aborted == []

    @pytest.mark.asyncio
    async def test_finalize_failure_rejects(self, transport, record_factory, metadata):
        finalizer = FakeFinalizer(record_factory(), error=FinalizeError("Invalid category", status_code=422))
        coordinator = UploadCoordinator(transport, finalizer, chunk_size=10)
        progress = []

        with pytest.raises(FinalizeError, match="Invalid category"):
            await coordinator.upload_file_in_chunks(
                io.BytesIO(b"r" * 25), metadata, on_progress=progress.append, filename="e.mp4",
            )

        assert len(transport.calls) == 3
        assert progress[-1] == 100
        assert len(finalizer.calls) == 1


class TestConcurrentSessions:
    """Independent uploads never share state or session identity."""

    @pytest.mark.asyncio
    async def test_concurrent_uploads_get_distinct_sessions(self, record_factory, metadata):
        transport = FakeTransport(delay=True)
        finalizer = FakeFinalizer(record_factory())
        coordinator = UploadCoordinator(transport, finalizer, chunk_size=3)

        uploads = [
            coordinator.upload_file_in_chunks(io.BytesIO(os.urandom(10)), metadata, filename=f"f{i}.mp4")
            for i in range(50)
        ]
        await asyncio.gather(*uploads)

        session_ids = [c["session_id"] for c in finalizer.calls]
        assert len(set(session_ids)) == 50

        for session_id in session_ids:
            indices = [c["index"] for c in transport.calls if c["session_id"] == session_id]
            assert indices == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_many_sessions_are_pairwise_distinct(self, coordinator, finalizer, metadata):
        for _ in range(200):
            await coordinator.upload_file_in_chunks(io.BytesIO(b"s"), metadata, filename="g.mp4")

        session_ids = [c["session_id"] for c in finalizer.calls]
        assert len(set(session_ids)) == len(session_ids) == 200


class TestCancellation:
    """Cancellation is checked before each chunk and before finalize."""

    @pytest.mark.asyncio
    async def test_cancel_mid_upload(self, coordinator, transport, finalizer, metadata):
        token = CancellationToken()

        def on_progress(value):
            if len(transport.calls) == 2:
                token.cancel("user navigated away")

        with pytest.raises(UploadCancelledError) as exc_info:
            await coordinator.upload_file_in_chunks(
                io.BytesIO(b"c" * 50), metadata, chunk_size=10,
                on_progress=on_progress, cancel_token=token, filename="h.mp4",
            )

        assert exc_info.value.chunks_sent == 2
        assert [c["index"] for c in transport.calls] == [0, 1]
        assert transport.aborted == [transport.calls[0]["session_id"]]
        assert finalizer.calls == []
        assert token.reason == "user navigated away"

    @pytest.mark.asyncio
    async def test_cancel_before_finalize(self, coordinator, transport, finalizer, metadata):
        token = CancellationToken()

        def on_progress(value):
            if value == 100:
                token.cancel()

        with pytest.raises(UploadCancelledError):
            await coordinator.upload_file_in_chunks(
                io.BytesIO(b"c" * 20), metadata, chunk_size=10,
                on_progress=on_progress, cancel_token=token, filename="i.mp4",
            )

        assert len(transport.calls) == 2
        assert finalizer.calls == []
        assert len(transport.aborted) == 1

    @pytest.mark.asyncio
    async def test_already_cancelled_token_sends_nothing(self, coordinator, transport, finalizer, metadata):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(UploadCancelledError) as exc_info:
            await coordinator.upload_file_in_chunks(
                io.BytesIO(b"c" * 20), metadata, chunk_size=10, cancel_token=token, filename="j.mp4",
            )

        assert exc_info.value.chunks_sent == 0
        assert transport.calls == []
        assert finalizer.calls == []

    @pytest.mark.asyncio
    async def test_task_cancellation_notifies_server(self, finalizer, metadata):
        release = asyncio.Event()
        reached = asyncio.Event()

        class BlockingTransport(FakeTransport):
            async def send_chunk(self, data, filename, index, total_chunks, session_id):
                if index == 1:
                    reached.set()
                    await release.wait()
                return await super().send_chunk(data, filename, index, total_chunks, session_id)

        transport = BlockingTransport()
        coordinator = UploadCoordinator(transport, finalizer, chunk_size=10)
        task = asyncio.create_task(
            coordinator.upload_file_in_chunks(io.BytesIO(b"t" * 30), metadata, filename="k.mp4")
        )
        await reached.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert [c["index"] for c in transport.calls] == [0]
        assert transport.aborted == [transport.calls[0]["session_id"]]
        assert finalizer.calls == []
