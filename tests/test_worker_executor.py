"""Tests for the indexing worker's command handlers.

The worker is driven directly with an ``emit`` list, without any queue or
execution context in between.
"""

from pathlib import Path

import pytest

from codebase_indexer.config.settings import IndexConfig
from codebase_indexer.worker.executor import IndexWorker
from codebase_indexer.worker.protocol import (
    BatchUpdateCommand,
    BatchUpdateResultResponse,
    CompleteResponse,
    ErrorResponse,
    IndexCommand,
    ProgressResponse,
    ResultResponse,
    UpdateCommand,
    UpdateResultResponse,
)


def of_type(responses, cls):
    return [r for r in responses if isinstance(r, cls)]


def indexed_chunks(responses):
    return [chunk for r in of_type(responses, ResultResponse) for chunk in r.chunks]


def hashes_from(responses) -> list[tuple[str, str]]:
    """The ``{path -> hash}`` map a store would hold after applying a run."""
    hashes: dict[str, str] = {}
    for chunk in indexed_chunks(responses):
        hashes[chunk.file_path] = chunk.file_hash
    return list(hashes.items())


@pytest.fixture
def worker(embedder_factory):
    return IndexWorker(embedder_factory)


async def run_index(worker, workspace, config, existing_hashes=None):
    responses = []
    await worker.handle(
        IndexCommand(
            workspace_path=str(workspace), config=config, existing_hashes=existing_hashes
        ),
        responses.append,
    )
    return responses


@pytest.mark.asyncio
class TestIndexCommand:
    async def test_full_index(self, worker, workspace: Path, index_config):
        """Two indexable files produce two chunks; the binary file is ignored."""
        responses = await run_index(worker, workspace, index_config)

        assert responses[0] == ProgressResponse(processed=0, total=2)
        assert responses[-1] == CompleteResponse(total_chunks=2)

        chunks = indexed_chunks(responses)
        assert sorted(c.relative_path for c in chunks) == ["a.ts", "b.py"]
        by_path = {c.relative_path: c for c in chunks}
        assert by_path["a.ts"].type == "function"
        assert by_path["a.ts"].symbols == ("greet",)
        assert by_path["b.py"].type == "class"
        assert all(len(c.vector) == 8 for c in chunks)

        last_result = of_type(responses, ResultResponse)[-1]
        assert (last_result.processed, last_result.total) == (2, 2)

    async def test_chunks_carry_absolute_paths(self, worker, workspace: Path, index_config):
        responses = await run_index(worker, workspace, index_config)

        for chunk in indexed_chunks(responses):
            assert Path(chunk.file_path).is_absolute()
            assert chunk.file_path == str(workspace / chunk.relative_path)

    async def test_reindex_with_same_hashes_is_noop(
        self, worker, workspace: Path, index_config, fake_embedder
    ):
        first = await run_index(worker, workspace, index_config)
        calls_after_first = len(fake_embedder.calls)

        second = await run_index(
            worker, workspace, index_config, existing_hashes=hashes_from(first)
        )

        assert of_type(second, ResultResponse) == []
        assert of_type(second, UpdateResultResponse) == []
        assert second[-1] == CompleteResponse(total_chunks=0)
        assert len(fake_embedder.calls) == calls_after_first

    async def test_only_changed_file_is_reembedded(
        self, worker, workspace: Path, index_config, fake_embedder
    ):
        first = await run_index(worker, workspace, index_config)
        (workspace / "b.py").write_text(
            (workspace / "b.py").read_text() + "\nGREETING = 'hello'\n"
        )
        fake_embedder.calls.clear()

        second = await run_index(
            worker, workspace, index_config, existing_hashes=hashes_from(first)
        )

        assert len(fake_embedder.calls) == 1
        assert {c.relative_path for c in indexed_chunks(second)} == {"b.py"}

    async def test_deleted_file_signalled_once_before_progress(
        self, worker, workspace: Path, index_config
    ):
        first = await run_index(worker, workspace, index_config)
        (workspace / "a.ts").unlink()

        second = await run_index(
            worker, workspace, index_config, existing_hashes=hashes_from(first)
        )

        deletions = of_type(second, UpdateResultResponse)
        assert deletions == [
            UpdateResultResponse(file_path=str(workspace / "a.ts"), deleted=True)
        ]
        assert second.index(deletions[0]) < second.index(ProgressResponse(processed=0, total=1))

    async def test_no_deletion_signals_without_prior_hashes(
        self, worker, workspace: Path, index_config
    ):
        responses = await run_index(worker, workspace, index_config, existing_hashes=None)
        assert of_type(responses, UpdateResultResponse) == []

    async def test_oversized_file_is_skipped(
        self, worker, workspace: Path, index_config, fake_embedder
    ):
        (workspace / "big.py").write_text("x = 1\n" * 100)
        config = index_config.model_copy(update={"max_file_size": 400})

        responses = await run_index(worker, workspace, config)

        assert "big.py" not in {c.relative_path for c in indexed_chunks(responses)}
        assert not any("x = 1" in text for text in fake_embedder.embedded_texts)
        last_result = of_type(responses, ResultResponse)[-1]
        assert last_result.processed == 3

    async def test_empty_workspace_completes_immediately(
        self, worker, tmp_path: Path, index_config
    ):
        responses = await run_index(worker, tmp_path, index_config)

        assert responses == [
            ProgressResponse(processed=0, total=0),
            CompleteResponse(total_chunks=0),
        ]

    async def test_progress_pings_every_ten_files(
        self, worker, tmp_path: Path, index_config
    ):
        for i in range(25):
            (tmp_path / f"note_{i:02d}.md").write_text(f"# Note {i}\n")

        responses = await run_index(worker, tmp_path, index_config)

        pings = [r.processed for r in of_type(responses, ProgressResponse)]
        assert pings == [0, 10, 20]
        assert of_type(responses, ResultResponse)[-1].processed == 25
        assert responses[-1] == CompleteResponse(total_chunks=25)

    async def test_results_flushed_in_batches(self, worker, tmp_path: Path, index_config):
        for i in range(60):
            (tmp_path / f"note_{i:02d}.md").write_text(f"# Note {i}\n")

        responses = await run_index(worker, tmp_path, index_config)

        results = of_type(responses, ResultResponse)
        assert len(results) == 2
        assert len(results[0].chunks) == 50
        assert sum(len(r.chunks) for r in results) == 60

    async def test_failing_file_does_not_abort_run(
        self, worker, workspace: Path, index_config
    ):
        (workspace / "broken.md").write_text("FAIL_EMBEDDING\n")

        responses = await run_index(worker, workspace, index_config)

        assert responses[-1] == CompleteResponse(total_chunks=2)
        assert of_type(responses, ResultResponse)[-1].processed == 3

    async def test_chunks_without_vectors_are_dropped(
        self, worker, workspace: Path, index_config
    ):
        (workspace / "skip.md").write_text("SKIP_EMBEDDING\n")

        responses = await run_index(worker, workspace, index_config)

        assert "skip.md" not in {c.relative_path for c in indexed_chunks(responses)}
        # Chunker output is still counted
        assert responses[-1] == CompleteResponse(total_chunks=3)

    async def test_embedder_creation_failure_becomes_error(
        self, workspace: Path, index_config
    ):
        def failing_factory(config):
            raise RuntimeError("no credentials")

        responses = []
        await IndexWorker(failing_factory).handle(
            IndexCommand(workspace_path=str(workspace), config=index_config),
            responses.append,
        )

        assert responses[-1] == ErrorResponse(error="no credentials")

    async def test_unsupported_command_becomes_error(self, worker):
        responses = []
        await worker.handle(object(), responses.append)

        assert len(responses) == 1
        assert isinstance(responses[0], ErrorResponse)


@pytest.mark.asyncio
class TestUpdateCommands:
    async def test_update_reindexes_file(self, worker, workspace: Path, index_config):
        responses = []
        await worker.handle(
            UpdateCommand(
                workspace_path=str(workspace),
                file=str(workspace / "a.ts"),
                config=index_config,
            ),
            responses.append,
        )

        assert len(responses) == 1
        result = responses[0]
        assert isinstance(result, UpdateResultResponse)
        assert not result.deleted
        assert [c.symbols for c in result.chunks] == [("greet",)]

    async def test_update_of_missing_file_reports_deletion(
        self, worker, workspace: Path, index_config
    ):
        responses = []
        missing = str(workspace / "gone.py")
        await worker.handle(
            UpdateCommand(workspace_path=str(workspace), file=missing, config=index_config),
            responses.append,
        )

        assert responses == [UpdateResultResponse(file_path=missing, deleted=True)]

    async def test_update_of_oversized_file_reports_deletion(
        self, worker, workspace: Path, index_config
    ):
        config = index_config.model_copy(update={"max_file_size": 10})
        responses = []
        await worker.handle(
            UpdateCommand(
                workspace_path=str(workspace), file=str(workspace / "b.py"), config=config
            ),
            responses.append,
        )

        assert responses[0].deleted

    async def test_batch_update_partial_failure(
        self, worker, workspace: Path, index_config
    ):
        files = []
        for i in range(5):
            path = workspace / f"mod_{i}.py"
            path.write_text(f"VALUE_{i} = {i}\n")
            files.append(str(path))
        Path(files[2]).unlink()

        responses = []
        await worker.handle(
            BatchUpdateCommand(
                workspace_path=str(workspace), files=files, config=index_config
            ),
            responses.append,
        )

        assert len(responses) == 1
        batch = responses[0]
        assert isinstance(batch, BatchUpdateResultResponse)
        assert [r.file_path for r in batch.results] == files
        assert [r.deleted for r in batch.results] == [False, False, True, False, False]
        assert batch.results[2].chunks == []
        assert all(batch.results[i].chunks for i in (0, 1, 3, 4))

    async def test_batch_update_omits_failing_file(
        self, worker, workspace: Path, index_config
    ):
        broken = workspace / "broken.md"
        broken.write_text("FAIL_EMBEDDING\n")
        files = [str(workspace / "a.ts"), str(broken), str(workspace / "b.py")]

        responses = []
        await worker.handle(
            BatchUpdateCommand(
                workspace_path=str(workspace), files=files, config=index_config
            ),
            responses.append,
        )

        assert [r.file_path for r in responses[0].results] == [files[0], files[2]]
