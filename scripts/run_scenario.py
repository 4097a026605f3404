"""
WiFi/CSMA traffic scenario with Hydra configuration.

This script installs On/Off traffic sources on WiFi stations sending to a
wired server, runs the discrete-event clock to the configured duration and
reports per-flow and aggregate statistics:
- Transmitted, received and lost packets
- Throughput (Mbps)
- Mean end-to-end delay

Examples:
    python scripts/run_scenario.py scenario.traffic_type=Burst
    python scripts/run_scenario.py scenario.num_nodes=10 simulation.seed=42
"""

import hydra
from hydra.core.config_store import ConfigStore
from loguru import logger
from omegaconf import DictConfig, OmegaConf

from trafficsim.simulation import (
    build_scenario,
    ensure_dir,
    process_and_export,
    run_scenario,
)
from trafficsim.simulation_config import (
    ScenarioConfig,
    SimulationConfig,
    TrafficConfig,
    TrafficSimulationConfig,
)

cs = ConfigStore.instance()
cs.store(name="traffic_simulation_config", node=TrafficSimulationConfig)


def run_simulation(config: TrafficSimulationConfig) -> None:
    """
    Run one scenario and export its flow statistics.

    Args:
        config: Simulation configuration
    """
    simulation = config.simulation
    ensure_dir(simulation.output_dir)

    logger.info("=" * 60)
    logger.info("TRAFFIC SCENARIO")
    logger.info("=" * 60)
    logger.info(f"Nodes: {config.scenario.num_nodes}")
    logger.info(f"Traffic: {config.scenario.traffic_type}")
    logger.info(f"Mobility: {config.scenario.mobility_enabled}")
    logger.info(
        f"Applications active from {simulation.start_time}s to {simulation.stop_time}s, "
        f"clock stops at {simulation.duration}s"
    )

    scenario = build_scenario(config)

    try:
        events = run_scenario(scenario, show_progress=True)
    except Exception as e:
        logger.error(f"Simulation error: {e}")
        raise

    logger.info(f"Simulation complete after {events} events")

    process_and_export(
        scenario.monitor.flow_records().values(),
        scenario.window_seconds,
        simulation.output_dir,
    )

    logger.info("=" * 60)
    logger.info(f"Results saved to: {simulation.output_dir}")
    logger.info("=" * 60)


def _build_config_from_dict(cfg: DictConfig) -> TrafficSimulationConfig:
    """Build TrafficSimulationConfig from Hydra DictConfig."""
    scenario_cfg = ScenarioConfig(
        num_nodes=cfg.scenario.num_nodes,
        traffic_type=cfg.scenario.traffic_type,
        mobility_enabled=cfg.scenario.mobility_enabled,
    )

    traffic_cfg = TrafficConfig(
        data_rate=cfg.traffic.data_rate,
        packet_size=cfg.traffic.packet_size,
        server_port=cfg.traffic.server_port,
        cbr_on_time=cfg.traffic.cbr_on_time,
        cbr_off_time=cfg.traffic.cbr_off_time,
        burst_on_time=cfg.traffic.burst_on_time,
        burst_off_time=cfg.traffic.burst_off_time,
        max_bytes=cfg.traffic.max_bytes,
    )

    simulation_cfg = SimulationConfig(
        start_time=cfg.simulation.start_time,
        stop_time=cfg.simulation.stop_time,
        duration=cfg.simulation.duration,
        seed=cfg.simulation.seed,
        output_dir=cfg.simulation.output_dir,
        link_delay=cfg.simulation.link_delay,
        loss_rate=cfg.simulation.loss_rate,
    )

    return TrafficSimulationConfig(
        scenario=scenario_cfg,
        traffic=traffic_cfg,
        simulation=simulation_cfg,
    )


@hydra.main(
    version_base="1.2",
    config_path="../configs",
    config_name="scenario",
)
def main(cfg: DictConfig) -> None:
    """Main entry point with Hydra configuration."""
    schema = OmegaConf.structured(TrafficSimulationConfig)
    cfg = OmegaConf.merge(schema, cfg)

    logger.info("Configuration:")
    logger.info(OmegaConf.to_yaml(cfg))

    config = _build_config_from_dict(cfg)
    run_simulation(config)


if __name__ == "__main__":
    main()
