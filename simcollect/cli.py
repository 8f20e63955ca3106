#!filepath: simcollect/cli.py
import random
from collections import Counter
from pathlib import Path
from typing import Optional

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from simcollect import AppConfig, __version__, init_logging
from simcollect.core.coordinate import RunCoordinate, coordinate_grid
from simcollect.core.ledger import ProgressLedger, read_ledger
from simcollect.core.records import InventoryRecord, LogRecord, LogStatus
from simcollect.dispatch.router import DispatchRouter
from simcollect.experiment.executor import ExperimentExecutor
from simcollect.observability.instrumentation import Instrumentation
from simcollect.sinks.ledger_writer import ProgressLedgerWriter
from simcollect.sinks.log_sink import LogRecordSink
from simcollect.sinks.stat_sink import StatSink
from simcollect.sinks.status_sink import SimulationStatusSink
from simcollect.utils.errors import UserInputError

app = typer.Typer(help="Simulation experiment output collection CLI")
console = Console()


@app.command()
def version():
    print(f"v{__version__}")


@app.command()
def ledger(path: Path):
    """
    显示 ledger 中已完成的 run（按 scenario 汇总）
    """
    completed = read_ledger(path)
    if not len(completed):
        print(f"[yellow]No completed runs in {path}[/yellow]")
        return

    per_scenario = Counter(c.scenario_id for c in completed)
    table = Table(title=f"Completed runs: {path}")
    table.add_column("scenario", justify="right")
    table.add_column("replications", justify="right")
    table.add_column("ids")
    for scenario_id in completed.scenario_ids():
        ids = completed.replication_ids(scenario_id)
        table.add_row(str(scenario_id), str(per_scenario[scenario_id]), ",".join(map(str, ids)))
    console.print(table)
    print(f"[green]total completed: {len(completed)}[/green]")


def synthetic_inventory(samples: int, fail_scenario: Optional[int] = None):
    """
    合成 engine：每个 run 发出若干 Inventory 样本，可选地让某个 scenario 失败。
    """

    def simulate(coord: RunCoordinate, emit) -> None:
        rng = random.Random(coord.scenario_id * 1_000_003 + coord.replication_id)
        level = 100.0 * coord.scenario_id
        for t in range(samples):
            level = max(level + rng.gauss(0.0, 5.0), 0.0)
            emit(InventoryRecord(coord=coord, resource_id="R1", region_id="A", amount=level, time=float(t)))
        if coord.scenario_id == fail_scenario:
            emit(LogRecord(coord=coord, status=LogStatus.ERROR, message="synthetic failure"))
            raise RuntimeError(f"synthetic failure in {coord}")

    return simulate


@app.command()
def demo(
    config: Optional[Path] = typer.Option(None, help="YAML 配置文件"),
    scenarios: Optional[int] = typer.Option(None, help="覆盖 scenario_count"),
    replications: Optional[int] = typer.Option(None, help="覆盖 replication_count"),
    workers: Optional[int] = typer.Option(None, help="覆盖 max_workers"),
    ledger_path: Optional[Path] = typer.Option(None, "--ledger", help="ledger 文件（断点续跑）"),
    samples: int = typer.Option(50, help="每个 run 的 Inventory 样本数"),
    fail_scenario: Optional[int] = typer.Option(None, help="让该 scenario 的所有 run 失败"),
):
    """
    运行合成 Inventory 实验并打印每个 scenario 的统计
    """
    cfg = AppConfig.load(str(config) if config else None)
    init_logging(cfg.log)

    exp = cfg.experiment
    scenario_count = scenarios if scenarios is not None else exp.scenario_count
    replication_count = replications if replications is not None else exp.replication_count
    max_workers = workers if workers is not None else exp.max_workers
    ledger_file = ledger_path if ledger_path is not None else exp.ledger_path

    if scenario_count < 1 or replication_count < 1:
        raise UserInputError("scenario and replication counts must be positive")

    stat_sink = StatSink("Inventory", "amount")
    sinks = [LogRecordSink(), stat_sink]
    if exp.report_progress:
        sinks.append(SimulationStatusSink(scenario_count * replication_count))

    progress_ledger = ProgressLedger.empty()
    if ledger_file is not None:
        progress_ledger, writer = ProgressLedgerWriter.load(ledger_file)
        sinks.append(writer)

    inst = Instrumentation(enabled=True)
    router = DispatchRouter(sinks, inst=inst)

    print(
        f"[green]Running {scenario_count}x{replication_count} experiment "
        f"({len(progress_ledger)} runs already completed)[/green]"
    )
    summary = ExperimentExecutor.run(
        coords=coordinate_grid(scenario_count, replication_count),
        simulate=synthetic_inventory(samples, fail_scenario),
        router=router,
        ledger=progress_ledger,
        max_workers=max_workers,
        fail_fast=exp.fail_fast,
        produce_status_output=True,
    )
    inst.generate_timeline_report(f"{scenario_count}x{replication_count}")

    console.print(stat_sink.to_frame())
    print(
        f"[blue]completed={len(summary.completed)} failed={len(summary.failed)} "
        f"skipped={len(summary.skipped)}[/blue]"
    )


def main():
    try:
        app()
    except UserInputError as e:
        print(f"[red]{e}[/red]")
        raise SystemExit(2)


if __name__ == "__main__":
    main()

# python -m simcollect.cli demo --scenarios 3 --replications 4 --ledger progress.tsv
