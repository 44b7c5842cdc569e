"""
Command-line interface for the elastic balancer using Typer
"""
import json
import time
from pathlib import Path

import typer
from typing_extensions import Annotated

from .balancer import ElasticBalancer, build_balancer
from .config import ConfigError, create_default_config_file, load_config_with_env_override
from .counters import LoadCounters
from .lifecycle import InMemoryContainerDriver
from .logger import get_logger
from .scoring import calculate_score

app = typer.Typer(
    name="elastic-balancer",
    help="Scale a pool of worker containers from queued jobs and running workers",
    no_args_is_help=True,
)


def _load_config(config_file: Path, logger):
    try:
        return load_config_with_env_override(config_file)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(1)


@app.command()
def run(
    config_file: Annotated[Path, typer.Argument(help="Path to the YAML configuration file")],
    provision: Annotated[bool, typer.Option("--provision", help="Top the pool up to max containers on startup")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show detailed information")] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Enable debug logging")] = False,
):
    """Run the balancing loop until interrupted"""
    logger = get_logger(debug=debug, verbose=verbose)
    config = _load_config(config_file, logger)

    if not (debug or verbose):
        logger = get_logger(level=config.monitoring.log_level)

    try:
        balancer = build_balancer(config)
    except Exception as e:
        logger.error(f"Failed to start elastic balancer: {e}")
        raise typer.Exit(1)

    balancer.metrics.add_export_handler(lambda name, value: logger.debug(f"metric {name}={value}"))
    balancer.start()
    logger.success("Elastic balancer running, press Ctrl+C to stop")

    if provision:
        balancer.submit_provision()

    try:
        while balancer.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Stopping elastic balancer...")
    finally:
        balancer.close()


@app.command()
def score(
    queued_jobs: Annotated[int, typer.Argument(help="Number of queued jobs")],
    running_workers: Annotated[int, typer.Argument(help="Number of running workers")],
    threshold: Annotated[int, typer.Option("--threshold", "-t", help="Tolerance threshold")],
    min_containers: Annotated[int, typer.Option("--min-containers", help="Score returned when computation fails")] = 0,
):
    """Print the balance score for the given load"""
    outcome = calculate_score(queued_jobs, running_workers, threshold, fallback_score=min_containers)
    if outcome.fallback:
        typer.echo(f"{outcome.score} (fallback: {outcome.error})")
    else:
        typer.echo(str(outcome.score))


@app.command()
def simulate(
    config_file: Annotated[Path, typer.Argument(help="Path to the YAML configuration file")],
    queued: Annotated[int, typer.Option("--queued", help="Queued jobs")] = 0,
    workers: Annotated[int, typer.Option("--workers", help="Running workers")] = 0,
    containers: Annotated[int, typer.Option("--containers", help="Running containers in the pool")] = 0,
    debug: Annotated[bool, typer.Option("--debug", help="Enable debug logging")] = False,
):
    """Run a single cycle against an in-memory pool and print the result"""
    logger = get_logger(debug=debug)
    config = _load_config(config_file, logger)

    driver = InMemoryContainerDriver(name="simulation")
    driver.add_containers(containers)

    counters = LoadCounters()
    counters.update(running_workers=workers, queued_jobs=queued)

    balancer = ElasticBalancer(config, driver, counters=counters)
    try:
        report = balancer.balance()
        output = {
            "report": report.to_dict(),
            "metrics": balancer.metrics.export_metrics("json"),
            "running_containers_after": driver.list_running_containers()
        }
        typer.echo(json.dumps(output, indent=2))
    finally:
        balancer.close()


@app.command()
def init_config(
    config_file: Annotated[Path, typer.Argument(help="Where to write the configuration file")],
):
    """Write a default configuration file"""
    logger = get_logger()
    try:
        create_default_config_file(config_file)
    except ConfigError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    typer.echo(f"Wrote default configuration to {config_file}")


def main():
    """Main entry point for the CLI"""
    app()


if __name__ == "__main__":
    main()
