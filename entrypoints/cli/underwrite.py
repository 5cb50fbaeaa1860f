from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import numpy as np
import typer

from dealengine.analysis.offer import solve_max_offer_price
from dealengine.analysis.sensitivity import build_sensitivity_grid
from dealengine.domain.errors import CalculationError
from dealengine.domain.inputs import DealInputs
from dealengine.services.calculator import compute_deal_metrics
from dealengine.services.validation import parse_deal_inputs

app = typer.Typer(help="Deal underwriting: metrics, sensitivity, max offer.")


def _load(payload: Path) -> DealInputs:
    raw = json.loads(payload.read_text(encoding="utf-8"))
    try:
        return parse_deal_inputs(raw)
    except CalculationError as e:
        typer.echo(json.dumps({"error": e.to_dict()}), err=True)
        raise typer.Exit(code=2)


@app.command()
def compute(
    payload: Path = typer.Argument(..., exists=True, help="Deal payload JSON file"),
) -> None:
    """
    Compute deal metrics for one payload and print them as JSON.
    """
    inputs = _load(payload)
    try:
        metrics = compute_deal_metrics(inputs)
    except CalculationError as e:
        typer.echo(json.dumps({"error": e.to_dict()}), err=True)
        raise typer.Exit(code=2)
    typer.echo(json.dumps(metrics.to_json_dict(), indent=2))


@app.command()
def sensitivity(
    payload: Path = typer.Argument(..., exists=True, help="Deal payload JSON file"),
    arv_delta: Optional[List[float]] = typer.Option(
        None, "--arv-delta", help="ARV change in percent (repeatable)"
    ),
    rent_delta: Optional[List[float]] = typer.Option(
        None, "--rent-delta", help="Rent change in percent (repeatable)"
    ),
) -> None:
    """
    Print an ARV x rent sensitivity grid.
    """
    inputs = _load(payload)
    try:
        grid = build_sensitivity_grid(inputs, arv_delta or None, rent_delta or None)
    except CalculationError as e:
        typer.echo(json.dumps({"error": e.to_dict()}), err=True)
        raise typer.Exit(code=2)
    # JSON has no infinity; a debt-free refinance reports null DSCR
    grid = grid.replace([np.inf, -np.inf], np.nan)
    typer.echo(grid.to_json(orient="records", indent=2))


@app.command("max-offer")
def max_offer(
    payload: Path = typer.Argument(..., exists=True, help="Deal payload JSON file"),
    target_cash_left: Optional[float] = typer.Option(
        None, help="Max cash left in the deal (default from config)"
    ),
) -> None:
    """
    Solve for the highest purchase price that meets the cash-left target.
    """
    inputs = _load(payload)
    try:
        best = solve_max_offer_price(inputs, target_cash_left)
    except CalculationError as e:
        typer.echo(json.dumps({"error": e.to_dict()}), err=True)
        raise typer.Exit(code=2)
    typer.echo(json.dumps({"max_offer_price": best}))


if __name__ == "__main__":
    app()
