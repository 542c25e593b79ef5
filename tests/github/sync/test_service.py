"""Tests for BuildSyncService.

Tests cover:
- First sync of an empty pipeline
- Idempotence of a repeated sync
- Pagination termination at the high-water mark
- In-progress re-checks, including provider 404s
- Fatal error propagation and what stays persisted
- Commit attribution during a sync
- Cooperative cancellation
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from ci_build_sync.db.repositories import BuildRepository
from ci_build_sync.github.exceptions import ProviderUnavailableError
from ci_build_sync.github.sync import BuildSyncService, CallbackProgressSink, CommitManager
from ci_build_sync.schemas import BuildStatus
from tests.conftest import HOUR_MS, JAN_15_LATER_ISO, JAN_15_MS, millis
from tests.factories import make_build, make_commit, make_pipeline
from tests.fixtures.provider import FakeProviderClient, run

PIPELINE = make_pipeline()


def _head(hour: int) -> str:
    """ISO head-commit time on Jan 15 at the given hour."""
    return f"2024-01-15T{hour:02d}:00:00Z"


def _ms(hour: int) -> int:
    """Epoch millis on Jan 15 at the given hour (JAN_15 is 10:00)."""
    return JAN_15_MS + (hour - 10) * HOUR_MS


def _recording_sink() -> tuple[list[tuple[int, int]], CallbackProgressSink]:
    ticks: list[tuple[int, int]] = []
    return ticks, CallbackProgressSink(lambda p: ticks.append((p.progress, p.total)))


@pytest.fixture
def repository(db_session):
    return BuildRepository(db_session)


# -----------------------------------------------------------------------------
# Test: First Sync
# -----------------------------------------------------------------------------
class TestFirstSync:
    """Tests for syncing a pipeline with no stored builds."""

    async def test_saves_new_builds_in_ascending_order(self, repository):
        """One page of 4 runs then an empty page saves 4 builds, ascending."""
        client = FakeProviderClient(
            pages=[[run(n, head_timestamp=_head(n - 90)) for n in (104, 103, 102, 101)]]
        )
        ticks, sink = _recording_sink()

        result = await BuildSyncService(client, repository, page_size=100).sync(PIPELINE, sink)

        assert result.created == 4
        assert result.created_numbers == [101, 102, 103, 104]
        assert ticks == [(1, 4), (2, 4), (3, 4), (4, 4)]
        assert client.page_requests == [(100, 1), (100, 2)]

        builds = await repository.get_all_builds("web")
        assert [b.number for b in sorted(builds, key=lambda b: b.id)] == [101, 102, 103, 104]

    async def test_paginates_until_empty_page(self, repository):
        """Without a high-water mark every page is fetched until an empty one."""
        client = FakeProviderClient(
            pages=[
                [run(104, head_timestamp=_head(14)), run(103, head_timestamp=_head(13))],
                [run(102, head_timestamp=_head(12)), run(101, head_timestamp=_head(11))],
            ]
        )
        _, sink = _recording_sink()

        result = await BuildSyncService(client, repository, page_size=2).sync(PIPELINE, sink)

        assert client.page_requests == [(2, 1), (2, 2), (2, 3)]
        assert result.pages_fetched == 3
        assert result.created == 4

    async def test_maps_status_and_stages(self, repository):
        """Terminal runs get one stage; running runs get none."""
        client = FakeProviderClient(
            pages=[
                [
                    run(102, status="in_progress", conclusion=None, head_timestamp=_head(12)),
                    run(101, conclusion="failure", updated_at=JAN_15_LATER_ISO),
                ]
            ]
        )
        _, sink = _recording_sink()

        await BuildSyncService(client, repository).sync(PIPELINE, sink)

        failed = await repository.get_by_number("web", 101)
        running = await repository.get_by_number("web", 102)
        assert failed is not None and running is not None
        assert failed.result == BuildStatus.FAILED
        assert failed.duration == 12 * 60 * 1000 + 30 * 1000
        assert len(failed.stages) == 1
        assert running.result == BuildStatus.IN_PROGRESS
        assert running.stages == []
        assert running.duration == 0

    async def test_unknown_conclusion_does_not_abort(self, repository):
        """Unrecognized conclusions are stored as OTHER."""
        client = FakeProviderClient(pages=[[run(101, conclusion="startup_failure")]])
        _, sink = _recording_sink()

        result = await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert result.created == 1
        build = await repository.get_by_number("web", 101)
        assert build is not None
        assert build.result == BuildStatus.OTHER


# -----------------------------------------------------------------------------
# Test: Idempotence
# -----------------------------------------------------------------------------
class TestIdempotence:
    """Tests for repeated syncs without new provider data."""

    async def test_second_sync_is_noop(self, repository):
        """A second sync saves nothing, emits nothing and stops on page 1."""
        client = FakeProviderClient(
            pages=[[run(n, head_timestamp=_head(n - 90)) for n in (104, 103, 102, 101)]],
            commits={"main": [make_commit("c1", _ms(10)), make_commit("c2", _ms(12))]},
        )
        service = BuildSyncService(client, repository)
        _, first_sink = _recording_sink()
        await service.sync(PIPELINE, first_sink)

        def snapshot(builds):
            return [(b.number, b.result, b.duration, b.change_sets) for b in builds]

        before = snapshot(await repository.get_all_builds("web"))
        client.page_requests.clear()
        ticks, sink = _recording_sink()

        result = await service.sync(PIPELINE, sink)

        assert result.created == 0
        assert result.updated == 0
        assert ticks == []
        assert client.page_requests == [(100, 1)]
        assert len(client.commit_requests) == 1
        assert snapshot(await repository.get_all_builds("web")) == before


# -----------------------------------------------------------------------------
# Test: Pagination Termination
# -----------------------------------------------------------------------------
class TestPaginationTermination:
    """Tests for stopping discovery at the high-water mark."""

    async def test_stops_at_first_page_with_known_build(self, db_session, repository):
        """Pages [new, new, known, known] are fetched only through the third."""
        for number in (101, 102, 103, 104):
            make_build(db_session, number=number, head_commit_timestamp=_ms(number - 90))
        await db_session.flush()

        client = FakeProviderClient(
            pages=[
                [run(108, head_timestamp=_head(18)), run(107, head_timestamp=_head(17))],
                [run(106, head_timestamp=_head(16)), run(105, head_timestamp=_head(15))],
                [run(104, head_timestamp=_head(14)), run(103, head_timestamp=_head(13))],
                [run(102, head_timestamp=_head(12)), run(101, head_timestamp=_head(11))],
            ]
        )
        _, sink = _recording_sink()

        result = await BuildSyncService(client, repository, page_size=2).sync(PIPELINE, sink)

        assert client.page_requests == [(2, 1), (2, 2), (2, 3)]
        assert result.created_numbers == [105, 106, 107, 108]
        assert await repository.count_for_pipeline("web") == 8

    async def test_known_build_mid_page_stops_discovery(self, db_session, repository):
        """Runs after the first known build on a page are not processed."""
        make_build(db_session, number=104, head_commit_timestamp=_ms(14))
        await db_session.flush()

        client = FakeProviderClient(
            pages=[
                [
                    run(106, head_timestamp=_head(16)),
                    run(105, head_timestamp=_head(15)),
                    run(104, head_timestamp=_head(14)),
                    run(103, head_timestamp=_head(13)),
                ]
            ]
        )
        _, sink = _recording_sink()

        result = await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert client.page_requests == [(100, 1)]
        assert result.created_numbers == [105, 106]

    async def test_run_already_stored_is_skipped(self, db_session, repository):
        """A discovered run whose number is already stored is not saved again."""
        make_build(db_session, number=101, head_commit_timestamp=_ms(11))
        await db_session.flush()

        client = FakeProviderClient(
            pages=[[run(102, head_timestamp=_head(12)), run(101, head_timestamp=_head(11))]]
        )
        ticks, sink = _recording_sink()

        with patch.object(repository, "get_latest_build", AsyncMock(return_value=None)):
            result = await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert result.created_numbers == [102]
        assert ticks == [(1, 1)]


# -----------------------------------------------------------------------------
# Test: In-Progress Re-checks
# -----------------------------------------------------------------------------
class TestInProgressRecheck:
    """Tests for re-fetching builds stored as IN_PROGRESS."""

    async def test_in_progress_build_transitions_to_success(self, db_session, repository):
        """A completed re-fetch saves SUCCESS once and creates nothing."""
        make_build(
            db_session,
            number=201,
            result=BuildStatus.IN_PROGRESS,
            change_sets=[{"id": "c1", "timestamp": _ms(9)}],
        )
        await db_session.flush()

        completed = run(201, status="completed", conclusion="success")
        client = FakeProviderClient(pages=[[completed]], runs={201: completed})
        ticks, sink = _recording_sink()

        with patch.object(repository, "save", wraps=repository.save) as save:
            result = await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert save.await_count == 1
        assert result.updated == 1
        assert result.created == 0
        assert ticks == [(1, 1)]

        build = await repository.get_by_number("web", 201)
        assert build is not None
        assert build.result == BuildStatus.SUCCESS
        assert build.stages[0]["completed_time_millis"] == millis(completed.updated_at)
        assert build.change_sets == [{"id": "c1", "timestamp": _ms(9)}]
        assert await repository.count_for_pipeline("web") == 1

    async def test_not_found_in_progress_build_is_skipped(self, db_session, repository):
        """A 404 for one in-progress build does not stop the next one."""
        make_build(db_session, number=201, result=BuildStatus.IN_PROGRESS)
        make_build(db_session, number=202, result=BuildStatus.IN_PROGRESS)
        await db_session.flush()

        completed = run(202, status="completed", conclusion="success")
        client = FakeProviderClient(pages=[[completed]], runs={202: completed})
        ticks, sink = _recording_sink()

        result = await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert client.run_requests == [201, 202]
        assert result.updated == 1
        assert result.skipped_not_found == 1
        assert ticks == [(1, 2)]

        first = await repository.get_by_number("web", 201)
        second = await repository.get_by_number("web", 202)
        assert first is not None and second is not None
        assert first.result == BuildStatus.IN_PROGRESS
        assert second.result == BuildStatus.SUCCESS

    async def test_still_running_build_is_saved_again(self, db_session, repository):
        """A run still in progress keeps IN_PROGRESS with no stages."""
        make_build(db_session, number=201, result=BuildStatus.IN_PROGRESS)
        await db_session.flush()

        running = run(201, status="queued", conclusion=None)
        client = FakeProviderClient(pages=[[running]], runs={201: running})
        _, sink = _recording_sink()

        result = await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert result.updated == 1
        build = await repository.get_by_number("web", 201)
        assert build is not None
        assert build.result == BuildStatus.IN_PROGRESS
        assert build.stages == []


# -----------------------------------------------------------------------------
# Test: Fatal Errors
# -----------------------------------------------------------------------------
class TestFatalErrors:
    """Tests for provider failures aborting a sync."""

    async def test_page_error_keeps_builds_saved_before_failure(self, test_engine):
        """A 500 during discovery aborts; the earlier in-progress update persists."""
        session_factory = async_sessionmaker(test_engine, expire_on_commit=False)
        async with session_factory() as session:
            make_build(session, number=201, result=BuildStatus.IN_PROGRESS)
            await session.commit()

        completed = run(201, status="completed", conclusion="success")
        client = FakeProviderClient(
            pages=[[run(203, head_timestamp=_head(13)), run(202, head_timestamp=_head(12))]],
            runs={201: completed},
        )
        client.page_errors[2] = ProviderUnavailableError(
            "GitHub API error (500)", status_code=500, endpoint="GET /runs?page=2"
        )

        async with session_factory() as session:
            repository = BuildRepository(session)
            service = BuildSyncService(
                client, repository, commit_manager=CommitManager(session), page_size=2
            )
            _, sink = _recording_sink()
            with pytest.raises(ProviderUnavailableError) as exc_info:
                await service.sync(PIPELINE, sink)
            await session.rollback()

        assert exc_info.value.status_code == 500
        assert client.page_requests == [(2, 1), (2, 2)]

        async with session_factory() as session:
            repository = BuildRepository(session)
            build = await repository.get_by_number("web", 201)
            assert build is not None
            assert build.result == BuildStatus.SUCCESS
            assert await repository.get_by_number("web", 202) is None
            assert await repository.get_by_number("web", 203) is None

    async def test_in_progress_fetch_error_stops_before_discovery(self, db_session, repository):
        """A 403 re-fetching an in-progress build aborts the whole sync."""
        make_build(db_session, number=201, result=BuildStatus.IN_PROGRESS)
        await db_session.flush()

        client = FakeProviderClient(pages=[[run(202)]])
        client.run_errors[201] = ProviderUnavailableError(
            "GitHub API error (403)", status_code=403, endpoint="GET /runs/201"
        )
        _, sink = _recording_sink()

        with pytest.raises(ProviderUnavailableError):
            await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert client.page_requests == []

    async def test_commit_fetch_error_saves_no_new_builds(self, repository):
        """Builds are never saved half-attributed."""
        client = FakeProviderClient(pages=[[run(101)]])
        client.commit_error = ProviderUnavailableError(
            "GitHub API error (502)", status_code=502, endpoint="GET /commits"
        )
        ticks, sink = _recording_sink()

        with pytest.raises(ProviderUnavailableError):
            await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert ticks == []
        assert await repository.count_for_pipeline("web") == 0


# -----------------------------------------------------------------------------
# Test: Attribution During Sync
# -----------------------------------------------------------------------------
class TestSyncAttribution:
    """Tests for commits attached to new builds during a sync."""

    async def test_commits_partitioned_between_new_builds(self, repository):
        """Each commit lands in the first build whose head commit is not older."""
        client = FakeProviderClient(
            pages=[[run(102, head_timestamp=_head(12)), run(101, head_timestamp=_head(11))]],
            commits={
                "main": [
                    make_commit("c0", _ms(9)),
                    make_commit("c1", _ms(11)),
                    make_commit("c2", _ms(11) + 1),
                    make_commit("c3", _ms(12)),
                ]
            },
        )
        _, sink = _recording_sink()

        result = await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert client.commit_requests == [("main", None, _ms(12))]
        assert result.attributed_commits == 4
        first = await repository.get_by_number("web", 101)
        second = await repository.get_by_number("web", 102)
        assert first is not None and second is not None
        assert [c["id"] for c in first.change_sets] == ["c0", "c1"]
        assert [c["id"] for c in second.change_sets] == ["c2", "c3"]

    async def test_previous_stored_build_bounds_window(self, db_session, repository):
        """Commits already owned by the stored build are not fetched again."""
        make_build(db_session, number=100, head_commit_timestamp=_ms(11))
        await db_session.flush()

        client = FakeProviderClient(
            pages=[[run(101, head_timestamp=_head(13)), run(100, head_timestamp=_head(11))]],
            commits={"main": [make_commit("old", _ms(10)), make_commit("new", _ms(12))]},
        )
        _, sink = _recording_sink()

        await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert client.commit_requests == [("main", _ms(11), _ms(13))]
        build = await repository.get_by_number("web", 101)
        assert build is not None
        assert [c["id"] for c in build.change_sets] == ["new"]

    async def test_untracked_branch_stored_without_commits(self, repository):
        """Runs on branches the pipeline does not track get empty change sets."""
        pipeline = make_pipeline(branches={"main"})
        client = FakeProviderClient(
            pages=[
                [
                    run(102, branch="feature/x", head_timestamp=_head(12)),
                    run(101, branch="main", head_timestamp=_head(11)),
                ]
            ],
            commits={
                "main": [make_commit("m1", _ms(11))],
                "feature/x": [make_commit("f1", _ms(12))],
            },
        )
        _, sink = _recording_sink()

        result = await BuildSyncService(client, repository).sync(pipeline, sink)

        assert result.created == 2
        assert [branch for branch, _, _ in client.commit_requests] == ["main"]
        feature = await repository.get_by_number("web", 102)
        assert feature is not None
        assert feature.change_sets == []

    async def test_run_without_head_commit_gets_no_commits(self, repository):
        """No head commit timestamp means no attribution window."""
        client = FakeProviderClient(
            pages=[[run(101, head_timestamp=None)]],
            commits={"main": [make_commit("c1", _ms(9))]},
        )
        _, sink = _recording_sink()

        await BuildSyncService(client, repository).sync(PIPELINE, sink)

        assert client.commit_requests == []
        build = await repository.get_by_number("web", 101)
        assert build is not None
        assert build.change_sets == []
        assert build.head_commit_timestamp is None


# -----------------------------------------------------------------------------
# Test: Cancellation
# -----------------------------------------------------------------------------
class TestCancellation:
    """Tests for the cooperative should_stop check."""

    async def test_stop_before_first_page(self, repository):
        """A stop request before discovery fetches no pages."""
        client = FakeProviderClient(pages=[[run(101)]])
        _, sink = _recording_sink()

        result = await BuildSyncService(client, repository).sync(
            PIPELINE, sink, should_stop=lambda: True
        )

        assert result.stopped_early is True
        assert client.page_requests == []
        assert result.created == 0

    async def test_stop_mid_discovery_saves_nothing_new(self, repository):
        """Partially discovered runs are dropped so no older run is skipped later."""
        client = FakeProviderClient(
            pages=[
                [run(104, head_timestamp=_head(14)), run(103, head_timestamp=_head(13))],
                [run(102, head_timestamp=_head(12)), run(101, head_timestamp=_head(11))],
            ]
        )
        checks = iter([False, True])
        _, sink = _recording_sink()

        result = await BuildSyncService(client, repository, page_size=2).sync(
            PIPELINE, sink, should_stop=lambda: next(checks)
        )

        assert client.page_requests == [(2, 1)]
        assert result.stopped_early is True
        assert await repository.count_for_pipeline("web") == 0


# -----------------------------------------------------------------------------
# Test: verify_pipeline
# -----------------------------------------------------------------------------
class TestVerifyPipeline:
    """Tests for the reachability check."""

    async def test_verify_calls_provider(self, repository):
        client = FakeProviderClient()

        await BuildSyncService(client, repository).verify_pipeline(PIPELINE)

        assert client.verify_requests == ["web"]

    async def test_verify_failure_propagates(self, repository):
        client = FakeProviderClient()
        client.verify_error = ProviderUnavailableError(
            "Resource not found", status_code=404, endpoint="GET /runs?per_page=1"
        )

        with pytest.raises(ProviderUnavailableError) as exc_info:
            await BuildSyncService(client, repository).verify_pipeline(PIPELINE)

        assert exc_info.value.status_code == 404
