from datetime import datetime, timedelta, timezone

import pytest

from callgen.batch import BatchAccumulator
from callgen.errors import SinkError
from callgen.models import Call
from callgen.sink import IlpRowWriter, write_row

T0 = datetime(2022, 1, 1, tzinfo=timezone.utc)
T0_MICROS = 1640995200000000
CAPACITY = 1024 * 1024


def make_call(i=0):
    return Call(
        id=f"call-{i}",
        site_id="site-a",
        channel_id="ch-1",
        fleet_id="fl-1",
        source_unit_id="unit-1",
        destination_talk_group_id="tg-1",
        started_at=T0,
        ended_at=T0 + timedelta(seconds=30),
    )


def offline_writer(capacity=CAPACITY):
    return IlpRowWriter(None, capacity)


def test_call_row_encoding():
    writer = offline_writer()
    write_row(writer, make_call().to_row())

    line = writer.pending_messages().decode("utf-8").strip()
    series, fields, ts = line.split(" ")

    assert series.startswith("calls,")
    assert "site_id=site-a" in series
    assert "destination_talk_group_id=tg-1" in series
    # id viaja como columna STRING, no como símbolo
    assert 'id="call-0"' in fields.split(",")
    assert f"started_at={T0_MICROS}t" in fields.split(",")
    assert f"ended_at={T0_MICROS + 30_000_000}t" in fields.split(",")
    assert "duration_sec=30i" in fields.split(",")
    # Timestamp designado = started_at, en nanosegundos
    assert int(ts) == T0_MICROS * 1000


def test_rows_accumulate_one_line_each():
    writer = offline_writer()
    for i in range(3):
        write_row(writer, make_call(i).to_row())
    lines = writer.pending_messages().decode("utf-8").splitlines()
    assert len(lines) == 3
    assert all(line.startswith("calls,") for line in lines)


def test_close_discards_pending_rows():
    writer = offline_writer()
    write_row(writer, make_call().to_row())
    assert writer.pending_messages()

    writer.close()
    assert writer.pending_messages() == b""


def test_offline_flush_is_rejected():
    writer = offline_writer()
    with pytest.raises(RuntimeError):
        writer.flush()


def test_commit_without_begin_row_is_rejected():
    with pytest.raises(RuntimeError):
        offline_writer().commit_row(T0)


def test_offline_buffer_is_bounded_by_capacity():
    writer = offline_writer(capacity=1024)
    with pytest.raises(BufferError):
        for i in range(200):
            write_row(writer, make_call(i).to_row())
    assert len(writer.pending_messages()) > 1024


def test_capacity_overflow_in_file_mode_is_a_sink_error(tmp_path):
    out = tmp_path / "calls.ilp"
    batch = BatchAccumulator(lambda: offline_writer(capacity=1024), threshold=1000, output_file=str(out))
    batch.extend(make_call(i).to_row() for i in range(200))

    with pytest.raises(SinkError) as exc:
        batch.flush()
    assert exc.value.table == "calls"
    assert exc.value.rows == 200
    assert isinstance(exc.value.__cause__, BufferError)
    assert not out.exists()
    batch.close()


def test_file_mode_writes_real_ilp(tmp_path):
    out = tmp_path / "calls.ilp"
    with BatchAccumulator(offline_writer, threshold=2, output_file=str(out)) as batch:
        for i in range(5):
            batch.append(make_call(i).to_row())
            batch.maybe_flush()
        batch.flush()

    lines = out.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 5
    assert [line.split('id="')[1].split('"')[0] for line in lines] == [f"call-{i}" for i in range(5)]


class RefusingSender:
    instances = []

    def __init__(self):
        self.closed_with = None
        RefusingSender.instances.append(self)

    @classmethod
    def from_conf(cls, conf):
        return cls()

    def establish(self):
        raise ConnectionError("questdb no disponible")

    def close(self, flush=True):
        self.closed_with = flush


def test_sender_is_closed_when_connection_fails(monkeypatch):
    import callgen.sink as sink_module

    RefusingSender.instances = []
    monkeypatch.setattr(sink_module, "Sender", RefusingSender)

    with pytest.raises(ConnectionError):
        IlpRowWriter("tcp::addr=localhost:9009;", CAPACITY)
    assert [s.closed_with for s in RefusingSender.instances] == [False]
