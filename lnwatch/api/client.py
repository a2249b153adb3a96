"""LND REST API client"""

import base64
import hashlib
import logging
import ssl
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..models.channel import UTXO, Channel, ForwardingEvent, split_outpoint
from ..utils.parsing import to_int

logger = logging.getLogger(__name__)

# Leases are keyed by a 32 byte id; reusing one id lets release find them.
LEASE_ID = hashlib.sha256(b"lnwatch-dust-protect").digest()
MAX_CONFS = 2147483647


class LNDTransportError(Exception):
    """The node could not be reached, refused the request, or answered garbage"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _chan_point_body(chan_point: str) -> Dict[str, Any]:
    txid, output_index = split_outpoint(chan_point)
    return {'funding_txid_str': txid, 'output_index': output_index}


def _outpoint_body(outpoint: str) -> Dict[str, Any]:
    txid, output_index = split_outpoint(outpoint)
    try:
        # OutPoint.txid_bytes is in internal byte order, the reverse of the hex txid
        txid_bytes = bytes.fromhex(txid)[::-1]
    except ValueError:
        raise ValueError(f"Invalid txid in outpoint {outpoint!r}")
    return {
        'txid_bytes': base64.b64encode(txid_bytes).decode(),
        'output_index': output_index,
    }


class LNDRestClient:
    """LND REST API client exposing what the analyses consume"""

    def __init__(self,
                 lnd_rest_url: str = "https://localhost:8080",
                 cert_path: Optional[str] = None,
                 macaroon_path: Optional[str] = None,
                 macaroon_hex: Optional[str] = None,
                 timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize LND REST client

        Args:
            lnd_rest_url: LND REST API URL (usually https://localhost:8080)
            cert_path: Path to tls.cert file; without it self-signed certificates are accepted
            macaroon_path: Path to admin.macaroon file
            macaroon_hex: Hex-encoded admin macaroon (alternative to file)
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport, mainly for tests
        """
        self.base_url = lnd_rest_url.rstrip('/')
        self.cert_path = cert_path
        self.timeout = timeout
        self.transport = transport

        if macaroon_hex:
            self.macaroon_hex = macaroon_hex
        elif macaroon_path:
            self.macaroon_hex = self._load_macaroon_hex(macaroon_path)
        else:
            default_paths = [
                Path.home() / ".lnd" / "data" / "chain" / "bitcoin" / "mainnet" / "admin.macaroon",
                Path("/home/bitcoin/.lnd/data/chain/bitcoin/mainnet/admin.macaroon"),
                Path("./admin.macaroon")
            ]

            self.macaroon_hex = None
            for path in default_paths:
                if path.exists():
                    self.macaroon_hex = self._load_macaroon_hex(str(path))
                    break

            if not self.macaroon_hex:
                raise ValueError("Could not find admin.macaroon file. Please specify macaroon_path or macaroon_hex")

        self.client: Optional[httpx.AsyncClient] = None

    def _load_macaroon_hex(self, macaroon_path: str) -> str:
        """Load macaroon file and convert to hex"""
        try:
            with open(Path(macaroon_path).expanduser(), 'rb') as f:
                return f.read().hex()
        except OSError as e:
            raise ValueError(f"Failed to load macaroon from {macaroon_path}: {e}")

    def _create_ssl_context(self) -> ssl.SSLContext:
        """Create SSL context for LND connection"""
        context = ssl.create_default_context()

        if self.cert_path:
            context.load_verify_locations(self.cert_path)
        else:
            # LND generates a self-signed certificate by default
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        return context

    async def __aenter__(self):
        if self.transport is not None:
            self.client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
        else:
            self.client = httpx.AsyncClient(
                timeout=self.timeout,
                verify=self._create_ssl_context() if not self.base_url.startswith('http://') else False
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.client:
            await self.client.aclose()
            self.client = None

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers with macaroon authentication"""
        return {
            'Grpc-Metadata-macaroon': self.macaroon_hex,
            'Content-Type': 'application/json'
        }

    async def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """Make authenticated request to LND REST API"""
        if not self.client:
            raise RuntimeError("Client not initialized. Use async with statement.")

        url = f"{self.base_url}{endpoint}"
        logger.debug(f"{method} {url}")

        try:
            response = await self.client.request(method, url, headers=self._get_headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Connection error to LND: {e}")
            raise LNDTransportError(f"Connection error to LND: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise LNDTransportError(
                f"Error parsing response from {endpoint}: {e}", status_code=response.status_code
            ) from e

        if not response.is_success:
            detail = response.text
            if isinstance(data, dict):
                detail = data.get('error') or data.get('message') or detail
            logger.error(f"LND API error ({response.status_code}) on {endpoint}: {detail}")
            raise LNDTransportError(
                f"LND API error ({response.status_code}): {detail}", status_code=response.status_code
            )

        return data if isinstance(data, dict) else {'result': data}

    async def get_node_info(self) -> Dict[str, Any]:
        return await self._request('GET', '/v1/getinfo')

    async def list_channels(self) -> List[Channel]:
        """Open channels with balances and pending HTLCs"""
        result = await self._request('GET', '/v1/channels')
        channels = [Channel.model_validate(c) for c in result.get('channels') or []]
        logger.debug(f"Fetched {len(channels)} channels")
        return channels

    async def get_forwarding_page(self,
                                  start_time: int,
                                  end_time: int,
                                  limit: int,
                                  offset: int) -> Tuple[List[ForwardingEvent], int]:
        """One page of forwarding history and the offset to continue from"""
        result = await self._request('POST', '/v1/switch', json={
            'start_time': str(start_time),
            'end_time': str(end_time),
            'num_max_events': limit,
            'index_offset': offset,
        })
        events = [ForwardingEvent.model_validate(e) for e in result.get('forwarding_events') or []]
        return events, to_int(result.get('last_offset_index'))

    async def list_utxos(self) -> List[UTXO]:
        """All wallet outputs, confirmed or not"""
        result = await self._request('POST', '/v2/wallet/utxos', json={
            'min_confs': 0,
            'max_confs': MAX_CONFS,
        })
        return [UTXO.model_validate(u) for u in result.get('utxos') or []]

    async def lease_output(self, outpoint: str, duration_seconds: int) -> int:
        """Lock an output against wallet coin selection; returns the expiration"""
        result = await self._request('POST', '/v2/wallet/utxos/lease', json={
            'id': base64.b64encode(LEASE_ID).decode(),
            'outpoint': _outpoint_body(outpoint),
            'expiration_seconds': str(duration_seconds),
        })
        logger.info(f"Leased {outpoint} for {duration_seconds}s")
        return to_int(result.get('expiration'))

    async def release_output(self, outpoint: str) -> None:
        await self._request('POST', '/v2/wallet/utxos/release', json={
            'id': base64.b64encode(LEASE_ID).decode(),
            'outpoint': _outpoint_body(outpoint),
        })
        logger.info(f"Released lease on {outpoint}")

    async def get_fee_report(self) -> List[Dict[str, Any]]:
        """Current per-channel fee policies with integer fields parsed"""
        result = await self._request('GET', '/v1/fees')
        return [
            {
                'chan_id': str(p.get('chan_id') or ""),
                'channel_point': p.get('channel_point') or "",
                'base_fee_msat': to_int(p.get('base_fee_msat'), 1000),
                'fee_per_mil': to_int(p.get('fee_per_mil'), 100),
            }
            for p in result.get('channel_fees') or []
        ]

    async def update_channel_policy(self,
                                    chan_point: Optional[str],
                                    base_fee_msat: int,
                                    fee_rate_ppm: int,
                                    time_lock_delta: int = 40,
                                    min_htlc_msat: Optional[int] = None) -> Dict[str, Any]:
        """
        Update fee policy for one channel, or for all channels when chan_point is None

        Args:
            chan_point: Channel point (funding_txid:output_index)
            base_fee_msat: Base fee in millisatoshis
            fee_rate_ppm: Fee rate in parts per million
            time_lock_delta: CLTV delta
            min_htlc_msat: New minimum HTLC size, left unchanged when None
        """
        body: Dict[str, Any] = {
            'base_fee_msat': str(base_fee_msat),
            'fee_rate_ppm': str(fee_rate_ppm),
            'time_lock_delta': time_lock_delta,
        }
        if min_htlc_msat is not None:
            body['min_htlc_msat'] = str(min_htlc_msat)
            body['min_htlc_msat_specified'] = True

        if chan_point:
            body['chan_point'] = _chan_point_body(chan_point)
        else:
            body['global'] = True

        logger.info(f"Updating {chan_point or 'all channels'} policy: "
                    f"base={base_fee_msat}msat rate={fee_rate_ppm}ppm")
        return await self._request('POST', '/v1/chanpolicy', json=body)
