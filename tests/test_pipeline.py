import asyncio
import csv
import logging
import random

from conftest import EMPTY_PAGE, WELCOME_PAGE, StubFetcher, no_sleep, ok, timeout
from textcheck.workflows.check_config import RunConfig
from textcheck.workflows.pipeline import run_check
from textcheck.workflows.result_sink import CsvResultSink

MARKER = "Bienvenido a Udeki"


def _config(tmp_path, **overrides):
    values = dict(
        base_url="https://x.test/login?id",
        expected_marker=MARKER,
        output_path=tmp_path / "resultados.csv",
        concurrency=2,
        requests_per_second=1000.0,
        min_jitter_ms=0,
        max_retries=2,
        timeout_ms=100,
        base_backoff_ms=1,
    )
    values.update(overrides)
    return RunConfig(**values)


def _rows(path):
    with path.open(encoding="utf-8", newline="") as fh:
        return list(csv.reader(fh))


def test_scenario_two_identifiers(tmp_path):
    config = _config(tmp_path)

    def respond(url, n):
        return ok(WELCOME_PAGE) if url.endswith("=1001") else ok(EMPTY_PAGE)

    summary = asyncio.run(run_check(["1001", "1002"], config, fetcher=StubFetcher(respond), sleep=no_sleep))

    lines = config.output_path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "id,url,status,timeMs,found,h3_content"
    by_id = {line.split(",")[0]: line for line in lines[1:]}
    assert by_id['"1001"'].startswith('"1001","https://x.test/login?id=1001",200,')
    assert by_id['"1001"'].endswith(',"SI","Bienvenido a Udeki"')
    assert by_id['"1002"'].startswith('"1002","https://x.test/login?id=1002",200,')
    assert by_id['"1002"'].endswith(',"NO","NOT_FOUND"')
    assert summary.matched == 1
    assert summary.not_matched == 1
    assert summary.errors == 0
    assert summary.written == 2


def test_url_join_strips_trailing_slash(tmp_path):
    config = _config(tmp_path, base_url="https://x.test/login?id/")
    fetcher = StubFetcher(lambda url, n: ok())
    asyncio.run(run_check(["42"], config, fetcher=fetcher, sleep=no_sleep))
    assert fetcher.calls == ["https://x.test/login?id=42"]
    assert _rows(config.output_path)[1][1] == "https://x.test/login?id=42"


def test_every_identifier_yields_one_row_under_random_completion(tmp_path):
    config = _config(tmp_path, concurrency=10)
    ids = [str(1000 + i) for i in range(100)]
    rng = random.Random(3)
    delays = {f"https://x.test/login?id={i}": rng.random() / 200 for i in ids}

    def respond(url, n):
        number = int(url.rsplit("=", 1)[1])
        if number % 10 == 0:
            return timeout()
        if number % 3 == 0 and n == 1:
            return timeout()
        return ok(WELCOME_PAGE if number % 2 else EMPTY_PAGE)

    fetcher = StubFetcher(respond, delay=lambda url: delays[url])
    summary = asyncio.run(run_check(ids, config, fetcher=fetcher, sleep=no_sleep))

    rows = _rows(config.output_path)
    assert len(rows) == 101
    assert all(len(row) == 6 for row in rows)
    assert sorted(row[0] for row in rows[1:]) == sorted(ids)
    assert summary.errors == 10
    assert summary.matched + summary.not_matched + summary.errors == 100
    # identifiers that always time out are tried max_retries + 1 times, never more
    assert max(fetcher.per_url.values()) == 3


def test_duplicate_identifiers_each_get_a_row(tmp_path):
    config = _config(tmp_path)
    asyncio.run(run_check(["7", "7", "8"], config, fetcher=StubFetcher(lambda url, n: ok()), sleep=no_sleep))
    assert [row[0] for row in _rows(config.output_path)[1:]].count("7") == 2


def test_unexpected_fault_still_writes_error_row(tmp_path):
    config = _config(tmp_path)

    class Broken:
        async def fetch(self, url, timeout_ms):
            if url.endswith("=bad"):
                raise KeyError("boom")
            return ok()

    summary = asyncio.run(run_check(["good", "bad"], config, fetcher=Broken(), sleep=no_sleep))

    rows = {row[0]: row for row in _rows(config.output_path)[1:]}
    assert rows["good"][4] == "SI"
    assert rows["bad"][4] == "ERROR"
    assert "KeyError" in rows["bad"][5]
    assert summary.faults == 1
    assert summary.written == 2


def test_resume_appends_without_second_header(tmp_path):
    config = _config(tmp_path)
    fetcher = StubFetcher(lambda url, n: ok())
    asyncio.run(run_check(["1"], config, fetcher=fetcher, sleep=no_sleep))
    asyncio.run(run_check(["2", "3"], config, fetcher=fetcher, sleep=no_sleep))

    rows = _rows(config.output_path)
    assert rows[0][0] == "id"
    assert rows[1][0] == "1"
    assert sorted(row[0] for row in rows[1:]) == ["1", "2", "3"]
    assert sum(1 for row in rows if row[0] == "id") == 1


def test_custom_match_label(tmp_path):
    config = _config(tmp_path, match_label="YES")
    summary = asyncio.run(run_check(["1"], config, fetcher=StubFetcher(lambda url, n: ok()), sleep=no_sleep))
    assert _rows(config.output_path)[1][4] == "YES"
    assert summary.matched == 1


def test_progress_logged_every_interval(tmp_path, caplog):
    caplog.set_level(logging.INFO, logger="textcheck.workflows.pipeline")
    config = _config(tmp_path, progress_every=2)
    asyncio.run(run_check(["1", "2", "3", "4"], config, fetcher=StubFetcher(lambda url, n: ok()), sleep=no_sleep))

    progress = [r.getMessage() for r in caplog.records if r.getMessage().startswith("-> ")]
    assert progress == ["-> 2/4", "-> 4/4"]


def test_summary_reports_counts_per_label(tmp_path):
    config = _config(tmp_path, max_retries=0)

    def respond(url, n):
        if url.endswith("=down"):
            return timeout()
        return ok(WELCOME_PAGE) if url.endswith("=1001") else ok(EMPTY_PAGE)

    summary = asyncio.run(run_check(["1001", "1002", "down"], config, fetcher=StubFetcher(respond), sleep=no_sleep))

    assert summary.errors == 1
    assert summary.to_dict()["labels"] == {"SI": 1, "NO": 1, "ERROR": 1}


def test_fault_counted_once_when_error_row_cannot_be_written(tmp_path, monkeypatch):
    async def failing_append(self, record):
        raise OSError("disk full")

    monkeypatch.setattr(CsvResultSink, "append", failing_append)
    config = _config(tmp_path)
    summary = asyncio.run(run_check(["1", "2", "3"], config, fetcher=StubFetcher(lambda url, n: ok()), sleep=no_sleep))

    assert summary.faults == 3
    assert summary.written == 0
