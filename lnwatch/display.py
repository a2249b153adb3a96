"""Console rendering of reports"""

from typing import Callable, Dict, Type

from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models.reports import (
    BalanceReport,
    ChannelListing,
    DustAnalysisReport,
    FeeSuggestionSet,
    ForwardingHistory,
    ForwardingSummary,
    HtlcRiskReport,
    PeerScoreReport,
    RebalancePlan,
    UtxoDustReport,
    UtxoListing,
)

console = Console()

STATUS_STYLES = {
    'balanced': 'green',
    'normal': 'green',
    'depleted_local': 'yellow',
    'depleted_remote': 'yellow',
    'warning': 'yellow',
    'critical': 'red',
    'dust_attack_suspected': 'bold red',
}


def _short(value: str, width: int = 16) -> str:
    return value[:width] + "..." if len(value) > width else value


def _styled(status: str) -> str:
    style = STATUS_STYLES.get(status, 'white')
    return f"[{style}]{status}[/{style}]"


def show_channel_listing(report: ChannelListing):
    summary = f"""
[bold]Channels[/bold]: {report.total_channels}
Capacity: {report.total_capacity_sat:,} sats
Local: {report.total_local_balance_sat:,} sats
Remote: {report.total_remote_balance_sat:,} sats
    """
    console.print(Panel(summary.strip(), title="Node Liquidity"))

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Channel", style="dim")
    table.add_column("Peer")
    table.add_column("Capacity", justify="right")
    table.add_column("Local %", justify="right")
    table.add_column("Uptime %", justify="right")
    table.add_column("Active")
    for c in report.channels:
        table.add_row(c.chan_id, _short(c.remote_pubkey), f"{c.capacity_sat:,}",
                      str(c.local_ratio_pct), str(c.uptime_pct), "yes" if c.active else "no")
    console.print(table)


def show_balance_report(report: BalanceReport):
    console.print(Panel(
        f"Balanced: {report.balanced_channels}  Imbalanced: {report.imbalanced_channels}  "
        f"(threshold {report.threshold_pct}%)",
        title="Balance Monitor",
    ))
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Channel", style="dim")
    table.add_column("Peer")
    table.add_column("Local %", justify="right")
    table.add_column("Status")
    for c in report.channels:
        table.add_row(c.chan_id, _short(c.remote_pubkey), str(c.local_ratio_pct), _styled(c.status.value))
    console.print(table)


def show_htlc_report(report: HtlcRiskReport):
    console.print(Panel(
        f"{report.alert}\nPending HTLCs: {report.total_pending_htlcs}  Dust HTLCs: {report.total_dust_htlcs}",
        title="HTLC Monitor",
    ))
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Channel", style="dim")
    table.add_column("Pending", justify="right")
    table.add_column("Utilization %", justify="right")
    table.add_column("Dust", justify="right")
    table.add_column("Risk")
    for c in report.channels:
        table.add_row(c.chan_id, str(c.pending_htlc_count), str(c.htlc_utilization_pct),
                      str(c.dust_htlc_count), _styled(c.risk_level.value))
    console.print(table)


def show_forwarding_history(report: ForwardingHistory):
    console.print(Panel(
        f"Forwards: {report.count:,}\nFees earned: {report.total_fee_earned_sat:,} sats\n"
        f"Routed in: {report.total_amount_in_msat // 1000:,} sats  "
        f"out: {report.total_amount_out_msat // 1000:,} sats",
        title=f"Forwarding History {report.start_time}-{report.end_time}",
    ))


def show_forwarding_summary(report: ForwardingSummary):
    console.print(Panel(
        f"Forwards: {report.total_events:,}  Channels: {report.unique_channels}  "
        f"Fees: {report.total_fee_earned_sat:,} sats",
        title="Forwarding Summary",
    ))
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Channel", style="dim")
    table.add_column("In", justify="right")
    table.add_column("Out", justify="right")
    table.add_column("Fees (sats)", justify="right")
    for c in report.channel_summary:
        table.add_row(c.chan_id, str(c.forwards_in), str(c.forwards_out), f"{c.fee_earned_sat:,}")
    console.print(table)


def show_dust_analysis(report: DustAnalysisReport):
    lines = [
        report.alert,
        f"Dust forwards: {report.total_dust_forwards}/{report.total_forwards} ({report.dust_percentage}%)",
    ]
    if report.fee_efficiency_warning:
        lines.append(report.fee_efficiency_warning)
    style = "red" if report.suspicious_routes else "green"
    console.print(Panel("\n".join(lines), title="Dust Analysis", border_style=style))

    if report.suspicious_routes:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Route")
        table.add_column("Count", justify="right")
        table.add_column("Min/Avg/Max (sats)", justify="right")
        for r in report.suspicious_routes:
            table.add_row(r.route, str(r.dust_forward_count),
                          f"{r.min_amount_sat}/{r.avg_amount_sat}/{r.max_amount_sat}")
        console.print(table)

    for rec in report.recommendations:
        console.print(f"[yellow]{rec.chan_id}[/yellow]: {rec.reason}; "
                      f"raise min HTLC to {rec.suggested_min_htlc_msat} msat")


def show_utxo_listing(report: UtxoListing):
    table = Table(show_header=True, header_style="bold magenta",
                  title=f"{report.total_utxos} UTXOs, {report.total_balance_btc} BTC")
    table.add_column("Outpoint", style="dim")
    table.add_column("Amount (sats)", justify="right")
    table.add_column("Confirmations", justify="right")
    for u in report.utxos:
        table.add_row(u.outpoint, f"{u.amount_sat:,}", str(u.confirmations))
    console.print(table)


def show_utxo_dust(report: UtxoDustReport):
    style = "red" if report.dust_utxos_count else "green"
    console.print(Panel(report.alert, title="Dust UTXOs", border_style=style))
    for r in report.frozen_results or []:
        mark = "[green]frozen[/green]" if r.status == "frozen" else f"[red]failed[/red] {r.error}"
        console.print(f"  {r.outpoint}: {mark}")


def show_peer_scores(report: PeerScoreReport):
    table = Table(show_header=True, header_style="bold magenta",
                  title=f"Peer scores (last {report.period_days} days)")
    table.add_column("Peer")
    table.add_column("Channels", justify="right")
    table.add_column("Revenue/M cap", justify="right")
    table.add_column("Uptime %", justify="right")
    table.add_column("Forwards", justify="right")
    table.add_column("Score", justify="right")
    for p in report.peer_scores:
        table.add_row(_short(p.pubkey), str(p.num_channels), str(p.revenue_per_million_capacity),
                      str(p.avg_uptime_pct), str(p.total_forwards), f"[bold]{p.score}[/bold]")
    console.print(table)


def show_rebalance_plan(report: RebalancePlan):
    console.print(Panel(
        f"Need outflow: {report.channels_need_outflow}  Need inflow: {report.channels_need_inflow}  "
        f"(target {report.target_ratio_pct}%, min deviation {report.min_deviation_pct}%)",
        title="Rebalance Plan",
    ))
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Amount (sats)", justify="right")
    for s in report.suggested_rebalances:
        table.add_row(f"{s.from_channel} ({s.from_local_ratio_pct}%)",
                      f"{s.to_channel} ({s.to_local_ratio_pct}%)",
                      f"{s.suggested_amount_sat:,}")
    console.print(table)


def show_fee_suggestions(report: FeeSuggestionSet):
    table = Table(show_header=True, header_style="bold magenta",
                  title="Fee suggestions" + (" (applied)" if report.applied else ""))
    table.add_column("Channel", style="dim")
    table.add_column("Local %", justify="right")
    table.add_column("Fee (ppm)", justify="right")
    table.add_column("Reason")
    for s in report.suggestions:
        table.add_row(s.chan_id, str(s.local_ratio_pct), str(s.suggested_fee_rate_ppm), s.reason)
    console.print(table)
    if report.failed_count:
        console.print(f"[red]{report.failed_count} update(s) failed[/red]")


RENDERERS: Dict[Type[BaseModel], Callable] = {
    ChannelListing: show_channel_listing,
    BalanceReport: show_balance_report,
    HtlcRiskReport: show_htlc_report,
    ForwardingHistory: show_forwarding_history,
    ForwardingSummary: show_forwarding_summary,
    DustAnalysisReport: show_dust_analysis,
    UtxoListing: show_utxo_listing,
    UtxoDustReport: show_utxo_dust,
    PeerScoreReport: show_peer_scores,
    RebalancePlan: show_rebalance_plan,
    FeeSuggestionSet: show_fee_suggestions,
}


def show_report(report: BaseModel):
    """Render a report, falling back to its JSON form"""
    renderer = RENDERERS.get(type(report))
    if renderer is None:
        console.print_json(report.model_dump_json())
        return
    renderer(report)
