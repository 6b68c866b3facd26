from datetime import datetime, timedelta, timezone

import pytest

from callgen.batch import BatchAccumulator
from callgen.errors import SinkError
from callgen.models import Row

T0 = datetime(2022, 1, 1, tzinfo=timezone.utc)


def make_rows(n, table="calls"):
    return [
        Row(table, {"site_id": "s1"}, {"id": f"call-{i}", "duration_sec": i}, T0 + timedelta(seconds=i))
        for i in range(n)
    ]


@pytest.mark.parametrize("n", [0, 1, 9, 10, 11, 57, 200])
@pytest.mark.parametrize("threshold", [1, 3, 10, 1000])
def test_every_row_flushed_once_in_order(sink, n, threshold):
    rows = make_rows(n)
    with BatchAccumulator(sink.new_writer, threshold) as batch:
        for row in rows:
            batch.append(row)
            batch.maybe_flush()
        batch.flush()

        assert batch.total_rows == n
        assert batch.flushes == len(sink.batches)

    flushed = [r["columns"]["id"][1] for r in sink.rows]
    assert flushed == [f"call-{i}" for i in range(n)]
    # Ningún lote intermedio supera threshold + 1 cuando se agrega de a una fila
    assert all(len(b) <= threshold + 1 for b in sink.batches)


def test_maybe_flush_only_above_threshold(sink):
    batch = BatchAccumulator(sink.new_writer, threshold=3)
    batch.extend(make_rows(3))
    assert batch.maybe_flush() is False
    assert sink.batches == []

    batch.append(make_rows(1)[0])
    assert batch.maybe_flush() is True
    assert len(sink.batches) == 1 and len(sink.batches[0]) == 4
    assert len(batch) == 0


def test_flush_on_empty_buffer_is_noop(sink):
    batch = BatchAccumulator(sink.new_writer, threshold=3)
    assert batch.flush() == 0
    assert sink.batches == []
    assert batch.flushes == 0


def test_columns_are_written_with_their_types(sink):
    row = Row(
        "channels",
        {"id": "c1", "site_id": "s1", "name": "Channel#00"},
        {"tx_freq": 420.5, "rx_freq": 410.5, "status": 1, "started_at": T0, "label": "x"},
        T0,
    )
    batch = BatchAccumulator(sink.new_writer, threshold=10)
    batch.append(row)
    batch.flush()

    written = sink.rows[0]
    assert written["table"] == "channels"
    assert written["symbols"] == {"id": "c1", "site_id": "s1", "name": "Channel#00"}
    assert written["columns"] == {
        "tx_freq": ("float", 420.5),
        "rx_freq": ("float", 410.5),
        "status": ("int", 1),
        "started_at": ("timestamp", T0),
        "label": ("string", "x"),
    }
    assert written["at"] == T0


def test_file_output_appends_and_recreates_writer(sink, tmp_path):
    out = tmp_path / "calls.ilp"
    batch = BatchAccumulator(sink.new_writer, threshold=2, output_file=str(out))
    first_writer = sink.writers[0]

    for row in make_rows(5):
        batch.append(row)
        batch.maybe_flush()
    batch.flush()
    batch.close()

    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines == [f"calls call-{i}" for i in range(5)]
    # Nada se envía por red en modo archivo
    assert sink.batches == []
    # Un escritor inicial + uno nuevo por cada vaciado a archivo
    assert len(sink.writers) == 1 + batch.flushes
    assert first_writer.closed
    assert all(w.closed for w in sink.writers)


def test_file_output_appends_to_existing_content(sink, tmp_path):
    out = tmp_path / "calls.ilp"
    out.write_text("previous\n", encoding="utf-8")
    with BatchAccumulator(sink.new_writer, threshold=10, output_file=str(out)) as batch:
        batch.extend(make_rows(2))
        batch.flush()
    assert out.read_text(encoding="utf-8").splitlines() == ["previous", "calls call-0", "calls call-1"]


def test_flush_failure_is_fatal_with_context(sink):
    sink.fail_on_flush = True
    batch = BatchAccumulator(sink.new_writer, threshold=10, stage="call-metric flush")
    batch.extend(make_rows(4))

    with pytest.raises(SinkError) as exc:
        batch.flush()

    err = exc.value
    assert err.stage == "call-metric flush"
    assert err.table == "calls"
    assert err.rows == 4
    assert isinstance(err.__cause__, IOError)
    assert batch.total_rows == 0


def test_writer_init_failure_is_a_sink_error():
    def broken():
        raise ConnectionError("questdb no disponible")

    with pytest.raises(SinkError) as exc:
        BatchAccumulator(broken, threshold=10, stage="static-record flush")
    assert exc.value.stage == "static-record flush"


def test_close_discards_unflushed_rows(sink):
    batch = BatchAccumulator(sink.new_writer, threshold=10)
    batch.extend(make_rows(3))
    batch.close()

    assert len(batch) == 0
    assert sink.batches == []
    assert sink.writers[0].closed

    with pytest.raises(SinkError):
        batch.extend(make_rows(1))
        batch.flush()
