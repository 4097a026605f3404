"""Loading flow records exported by an external flow monitor."""

import typing as tp
from pathlib import Path

import numpy as np
import pandas as pd
from loguru import logger

from trafficsim.simulation.errors import ConfigurationError
from trafficsim.simulation.metrics import FlowRecord

REQUIRED_COLUMNS = ["flow_id", "tx_packets", "rx_packets", "rx_bytes", "delay_sum"]


def load_flow_records(data_path: str | Path) -> tp.List[FlowRecord]:
    """
    Load flow records from a CSV file.

    Args:
        data_path: Path to CSV file with one row per flow. ``tx_bytes`` is
            optional; missing counters (NaN) are read as 0.

    Returns:
        List of FlowRecord, in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If a required column is missing
    """
    data_path = Path(data_path)

    if not data_path.exists():
        raise FileNotFoundError(f"Flow record file not found: {data_path}")

    logger.info(f"Loading flow records from {data_path}")
    df = pd.read_csv(data_path)

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ConfigurationError(
            f"Flow record file {data_path} is missing columns: {missing}"
        )

    if "tx_bytes" not in df.columns:
        df["tx_bytes"] = 0

    numeric = df[REQUIRED_COLUMNS + ["tx_bytes"]].to_numpy(dtype=float)
    if np.isnan(numeric).any():
        logger.warning("Found NaN values in flow records, replacing with 0")
        df[REQUIRED_COLUMNS + ["tx_bytes"]] = np.nan_to_num(numeric, nan=0.0)

    records = [
        FlowRecord(
            flow_id=int(row.flow_id),
            tx_packets=int(row.tx_packets),
            rx_packets=int(row.rx_packets),
            rx_bytes=int(row.rx_bytes),
            delay_sum=float(row.delay_sum),
            tx_bytes=int(row.tx_bytes),
        )
        for row in df.itertuples(index=False)
    ]

    logger.info(f"Loaded {len(records)} flow records")
    return records
