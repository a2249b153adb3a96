#!/usr/bin/env python3
"""lnwatch - command line entry point"""

import asyncio
import logging
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from . import operations as ops
from .api.client import LNDRestClient, LNDTransportError
from .display import show_report
from .utils.config import Config

console = Console()
logger = logging.getLogger(__name__)

PERIODS = click.Choice(['1h', '24h', '7d', '30d', 'custom'])


def setup_logging(verbose: bool = False):
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)]
    )


async def run_operation(config: Config, operation: ops.Operation):
    async with LNDRestClient(
        lnd_rest_url=config.lnd.rest_url,
        cert_path=config.lnd.cert_path,
        macaroon_path=config.lnd.macaroon_path,
        macaroon_hex=config.lnd.macaroon_hex,
        timeout=config.lnd.timeout,
    ) as client:
        return await ops.execute(operation, client)


def _run(ctx: click.Context, op_class, **params):
    """Build the operation from config defaults plus CLI overrides, run it, print it"""
    config: Config = ctx.obj['config']
    operation = ops.defaults_from_config(op_class, config.analysis, **params)

    try:
        report = asyncio.run(run_operation(config, operation))
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return
    except LNDTransportError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()
    except ValueError as e:
        raise click.ClickException(str(e))

    if ctx.obj['json']:
        click.echo(report.model_dump_json(indent=2))
    else:
        show_report(report)


@click.group()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='Configuration file path')
@click.option('--rest-url', help='LND REST API URL')
@click.option('--macaroon-path', help='Path to admin.macaroon file')
@click.option('--cert-path', help='Path to tls.cert file')
@click.option('--json', 'as_json', is_flag=True, help='Print reports as JSON')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config_path: Optional[str], rest_url: Optional[str], macaroon_path: Optional[str],
        cert_path: Optional[str], as_json: bool, verbose: bool):
    """lnwatch - liquidity, HTLC, forwarding and dust analytics for LND"""
    config = Config.load(config_path)
    if rest_url:
        config.lnd.rest_url = rest_url
    if macaroon_path:
        config.lnd.macaroon_path = macaroon_path
    if cert_path:
        config.lnd.cert_path = cert_path

    setup_logging(verbose or config.verbose)

    ctx.ensure_object(dict)
    ctx.obj['config'] = config
    ctx.obj['json'] = as_json


@cli.command()
@click.pass_context
def channels(ctx):
    """List channels with balances and uptime"""
    _run(ctx, ops.ListChannels)


@cli.command()
@click.option('--threshold', type=int, help='Imbalance threshold in percent')
@click.pass_context
def balance(ctx, threshold):
    """Flag channels with depleted local or remote balance"""
    _run(ctx, ops.MonitorBalances, threshold_pct=threshold)


@cli.command()
@click.option('--warning-threshold', type=int, help='Pending HTLC count that raises a warning')
@click.option('--dust-threshold', type=int, help='HTLCs at or below this many sats are dust')
@click.pass_context
def htlc(ctx, warning_threshold, dust_threshold):
    """Assess pending HTLC exhaustion and dust HTLC risk"""
    _run(ctx, ops.MonitorHtlcs, warning_threshold=warning_threshold, dust_threshold_sat=dust_threshold)


@cli.command()
@click.option('--period', type=PERIODS, help='Time range')
@click.option('--start', 'start_time', type=int, help='Custom range start (Unix seconds)')
@click.option('--end', 'end_time', type=int, help='Custom range end (Unix seconds)')
@click.pass_context
def history(ctx, period, start_time, end_time):
    """Forwarding history totals"""
    _run(ctx, ops.GetForwardingHistory, period=period, start_time=start_time, end_time=end_time)


@cli.command()
@click.option('--period', type=PERIODS, help='Time range')
@click.option('--start', 'start_time', type=int, help='Custom range start (Unix seconds)')
@click.option('--end', 'end_time', type=int, help='Custom range end (Unix seconds)')
@click.pass_context
def forwarding(ctx, period, start_time, end_time):
    """Per-channel forwarding revenue, highest earners first"""
    _run(ctx, ops.SummarizeForwarding, period=period, start_time=start_time, end_time=end_time)


@cli.command()
@click.option('--period', type=PERIODS, help='Time range')
@click.option('--threshold', type=int, help='Forwards at or below this many sats are dust')
@click.option('--rate-threshold', type=int, help='Dust forwards that make a route suspicious')
@click.option('--start', 'start_time', type=int, help='Custom range start (Unix seconds)')
@click.option('--end', 'end_time', type=int, help='Custom range end (Unix seconds)')
@click.pass_context
def dust(ctx, period, threshold, rate_threshold, start_time, end_time):
    """Detect dust forwarding patterns"""
    _run(ctx, ops.AnalyzeDust, period=period, threshold_sat=threshold,
         suspicious_rate_threshold=rate_threshold, start_time=start_time, end_time=end_time)


@cli.command('dust-utxos')
@click.option('--threshold', type=int, help='UTXOs at or below this many sats are dust')
@click.option('--freeze', is_flag=True, help='Lease every dust UTXO so it is not spent')
@click.option('--duration', type=int, help='Lease duration in seconds')
@click.pass_context
def dust_utxos(ctx, threshold, freeze, duration):
    """Find (and optionally freeze) dust UTXOs"""
    _run(ctx, ops.DetectDustUtxos, threshold_sat=threshold, auto_freeze=freeze,
         freeze_duration_seconds=duration)


@cli.command()
@click.pass_context
def utxos(ctx):
    """List wallet UTXOs"""
    _run(ctx, ops.ListUtxos)


@cli.command()
@click.argument('outpoint')
@click.option('--duration', type=int, help='Lease duration in seconds')
@click.pass_context
def lease(ctx, outpoint, duration):
    """Freeze one UTXO (txid:output_index)"""
    _run(ctx, ops.LeaseOutput, outpoint=outpoint, duration_seconds=duration)


@cli.command()
@click.argument('outpoint')
@click.pass_context
def release(ctx, outpoint):
    """Unfreeze one UTXO (txid:output_index)"""
    _run(ctx, ops.ReleaseOutput, outpoint=outpoint)


@cli.command()
@click.option('--days', type=int, help='Forwarding history to score over')
@click.pass_context
def peers(ctx, days):
    """Rank peers by revenue, uptime and activity"""
    _run(ctx, ops.ScorePeers, period_days=days)


@cli.command()
@click.option('--target', type=int, help='Target local ratio in percent')
@click.option('--min-deviation', type=int, help='Minimum deviation from target in percent')
@click.pass_context
def rebalance(ctx, target, min_deviation):
    """Suggest source/sink channel pairs to rebalance"""
    _run(ctx, ops.SuggestRebalances, target_ratio_pct=target, min_deviation_pct=min_deviation)


@cli.command()
@click.option('--low-fee', type=int, help='Fee (ppm) when local balance is low')
@click.option('--balanced-fee', type=int, help='Fee (ppm) when balanced')
@click.option('--high-fee', type=int, help='Fee (ppm) when local balance is high')
@click.option('--base-fee', type=int, help='Base fee (msat)')
@click.option('--apply', is_flag=True, help='Apply the suggestions to the node')
@click.pass_context
def fees(ctx, low_fee, balanced_fee, high_fee, base_fee, apply):
    """Suggest fee rates from channel balance"""
    _run(ctx, ops.SuggestFees, low_balance_fee_ppm=low_fee, balanced_fee_ppm=balanced_fee,
         high_balance_fee_ppm=high_fee, base_fee_msat=base_fee, apply=apply)


@cli.command('update-fee')
@click.option('--channel-point', help='txid:output_index, omit for all channels')
@click.option('--base-fee', type=int, required=True, help='Base fee (msat)')
@click.option('--fee-rate', type=int, required=True, help='Fee rate (ppm)')
@click.option('--time-lock-delta', type=int, help='CLTV delta')
@click.pass_context
def update_fee(ctx, channel_point, base_fee, fee_rate, time_lock_delta):
    """Set a channel's (or every channel's) fee policy"""
    _run(ctx, ops.UpdateFee, channel_point=channel_point, base_fee_msat=base_fee,
         fee_rate_ppm=fee_rate, time_lock_delta=time_lock_delta)


@cli.command('min-htlc')
@click.option('--channel-point', help='txid:output_index, omit for all channels')
@click.option('--min-htlc-msat', type=int, required=True, help='New minimum HTLC (msat)')
@click.pass_context
def min_htlc(ctx, channel_point, min_htlc_msat):
    """Raise the minimum HTLC size to shut out dust"""
    _run(ctx, ops.UpdateMinHtlc, channel_point=channel_point, min_htlc_msat=min_htlc_msat)


main = cli


if __name__ == "__main__":
    main()
