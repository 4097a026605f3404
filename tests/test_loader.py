import pytest

from trafficsim.data.loader import load_flow_records
from trafficsim.simulation.calculations import aggregate_flow_stats
from trafficsim.simulation.errors import ConfigurationError


def write_csv(path, text):
    path.write_text(text)
    return path


def test_load_flow_records(tmp_path):
    path = write_csv(
        tmp_path / "flows.csv",
        "flow_id,tx_packets,rx_packets,rx_bytes,delay_sum,tx_bytes\n"
        "1,1000,1000,1024000,1.0,1024000\n"
        "2,50,0,0,0.0,51200\n",
    )

    records = load_flow_records(path)

    assert [r.flow_id for r in records] == [1, 2]
    assert records[0].rx_bytes == 1_024_000
    assert records[0].delay_sum == pytest.approx(1.0)
    assert records[1].tx_bytes == 51_200

    result = aggregate_flow_stats(records, 1.0)
    assert result.per_flow[0].throughput_mbps == pytest.approx(8.192)


def test_tx_bytes_column_is_optional(tmp_path):
    path = write_csv(
        tmp_path / "flows.csv",
        "flow_id,tx_packets,rx_packets,rx_bytes,delay_sum\n1,10,10,1000,0.1\n",
    )
    (record,) = load_flow_records(str(path))
    assert record.tx_bytes == 0


def test_missing_values_read_as_zero(tmp_path):
    path = write_csv(
        tmp_path / "flows.csv",
        "flow_id,tx_packets,rx_packets,rx_bytes,delay_sum\n1,10,,,\n",
    )
    (record,) = load_flow_records(path)
    assert record.rx_packets == 0
    assert record.delay_sum == 0.0


def test_missing_column(tmp_path):
    path = write_csv(tmp_path / "flows.csv", "flow_id,tx_packets\n1,10\n")
    with pytest.raises(ConfigurationError, match="delay_sum"):
        load_flow_records(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_flow_records(tmp_path / "absent.csv")
