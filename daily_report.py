"""
Daily edge report (markdown)
============================
Renders a slate's scoring results by model and tier. Output is a pure
function of the results; write_report() saves it under REPORT_DIR as
YYYY-MM-DD.md.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from edge_engine import edge_outcome
from signals.edge_result import EdgeResult
from tiering import ENGINE_VERSION, Model, Tier, get_tier_config

logger = logging.getLogger(__name__)

RULE = "=" * 70
SEPARATOR = "-" * 70

MODEL_TITLES = {
    Model.ML.value: "Moneyline",
    Model.SPREAD.value: "Spread",
    Model.TOTAL.value: "Total",
    Model.PICKEM.value: "Pickem Underdog",
}


def _header(day: date, timezone_name: str) -> List[str]:
    return [
        RULE,
        f"Edge Engine v{ENGINE_VERSION} - Daily Analysis Report",
        f"{day.isoformat()} ({timezone_name})",
        RULE,
    ]


def _backtest_section(backtest: List[Dict[str, Any]]) -> List[str]:
    lines = [
        "## Backtest",
        "",
        "| Tier | Edge range | Hit rate | Action |",
        "|------|------------|----------|--------|",
    ]
    for row in backtest:
        lines.append(
            f"| {row.get('tier', '-')} | {row.get('range', '-')} | "
            f"{row.get('hit_rate', '-')} | {row.get('action', '-')} |"
        )
    return lines


def _summary_section(results: Dict[str, List[EdgeResult]]) -> List[str]:
    everything = [r for items in results.values() for r in items]
    games = len(results.get(Model.ML.value) or []) or len({r.game_id or r.matchup for r in everything})
    strong = sum(1 for r in everything if r.tier in (Tier.ELITE, Tier.STRONG_BET) and not r.risky)
    bets = sum(1 for r in everything if r.tier == Tier.BET and not r.risky)
    risky = sum(1 for r in everything if r.risky)
    actionable = sorted((r for r in everything if r.actionable), key=lambda r: r.edge, reverse=True)

    lines = [
        "## Summary",
        "",
        f"- Games: {games}",
        f"- Strong bets: {strong}",
        f"- Bets: {bets}",
        f"- Risky (unstable flow): {risky}",
        "",
    ]
    if actionable:
        lines.append("### Actionable picks")
        lines.append("")
        for r in actionable:
            lines.append(f"- **{r.matchup}** [{r.model.value}]: {r.recommended} (Edge {r.edge}) {r.signal}")
    else:
        lines.append("### No game reaches the bet threshold - PASS")
    return lines


def action_for(result: EdgeResult) -> str:
    caution = get_tier_config(result.model)["tiers"].get(Tier.CAUTION.value)
    if result.actionable:
        return f"ACTION: {result.recommended}"
    if result.risky:
        return f"RISKY: {result.flow} flow - avoid"
    if caution is not None and result.edge >= caution:
        return "CAUTION: watch only"
    return "PASS: insufficient edge"


def _pct(value: Optional[Any]) -> str:
    return f"{value}%" if value is not None else "-"


def _model_section(model: str, items: List[EdgeResult]) -> List[str]:
    lines = [SEPARATOR, f"## {MODEL_TITLES.get(model, model)}", ""]
    if not items:
        lines.append("_No qualifying games._")
        return lines

    lines.extend([
        "| Matchup | Edge | Pick | Signal | Flow | Win% H/A | Net RTG H/A | Result |",
        "|---------|------|------|--------|------|----------|-------------|--------|",
    ])
    for r in items:
        d = r.details
        win_pct = f"{_pct(d.get('home_win_pct'))} / {_pct(d.get('away_win_pct'))}"
        net = f"{d.get('home_net_rating', '-')} / {d.get('away_net_rating', '-')}"
        final = d.get("final_score")
        outcome = f"{final['home']}-{final['away']} {edge_outcome(r)}" if final else "-"
        lines.append(
            f"| {r.matchup} | **{r.edge}** | {r.recommended} ({r.side}) | {r.signal} | "
            f"{r.flow or '-'} | {win_pct} | {net} | {outcome} |"
        )

    lines.extend(["", "**Action guide**", ""])
    for r in items:
        lines.append(f"- {r.matchup}: {action_for(r)}")
    return lines


def _footer() -> List[str]:
    return [
        RULE,
        f"Edge Engine v{ENGINE_VERSION} - backtest-calibrated analysis",
        "Data: graph store (team stats, team regime), market lines",
        RULE,
    ]


def render_report(
    day: date,
    results: Dict[str, List[EdgeResult]],
    backtest: Optional[List[Dict[str, Any]]] = None,
    timezone_name: Optional[str] = None,
) -> str:
    if timezone_name is None:
        from env_config import Config
        timezone_name = Config.TIMEZONE

    lines = _header(day, timezone_name)
    lines.append("")
    if backtest:
        lines.extend(_backtest_section(backtest))
        lines.append("")
    lines.extend(_summary_section(results))
    lines.append("")
    for model in MODEL_TITLES:
        lines.extend(_model_section(model, results.get(model) or []))
        lines.append("")
    lines.extend(_footer())
    return "\n".join(lines) + "\n"


def write_report(
    day: date,
    results: Dict[str, List[EdgeResult]],
    backtest: Optional[List[Dict[str, Any]]] = None,
    report_dir: Optional[str] = None,
) -> Path:
    if report_dir is None:
        from env_config import Config
        report_dir = Config.REPORT_DIR

    directory = Path(report_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{day.isoformat()}.md"
    path.write_text(render_report(day, results, backtest), encoding="utf-8")
    logger.info("Edge report written to %s", path)
    return path
