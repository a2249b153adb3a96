"""Configuration management for lnwatch"""

import os
from typing import Optional, Dict, Any
from pathlib import Path
from dataclasses import dataclass, asdict, fields
import json
from dotenv import load_dotenv

ENV_PREFIX = "LNW_"


@dataclass
class LNDConfig:
    """LND REST connection configuration"""
    rest_url: str = "https://localhost:8080"
    macaroon_hex: Optional[str] = None
    macaroon_path: Optional[str] = None
    cert_path: Optional[str] = None
    timeout: float = 30.0


@dataclass
class AnalysisConfig:
    """Default thresholds for every analysis"""
    # Balance monitor (percent)
    imbalance_threshold: int = 20

    # HTLC monitor
    htlc_warning_threshold: int = 200
    htlc_dust_threshold_sat: int = 546

    # Dust analysis of forwards
    dust_analysis_threshold_sat: int = 100
    suspicious_rate_threshold: int = 50

    # Fee suggestion tiers (ppm)
    low_balance_fee_ppm: int = 500
    balanced_fee_ppm: int = 100
    high_balance_fee_ppm: int = 10
    auto_base_fee_msat: int = 1000
    time_lock_delta: int = 40

    # Rebalance planner (percent)
    target_ratio: int = 50
    min_deviation: int = 20

    # UTXO hygiene
    utxo_dust_threshold_sat: int = 1000
    freeze_duration_seconds: int = 2_592_000  # 30 days

    # Forwarding history
    forwarding_page_size: int = 10_000
    default_period: str = "24h"
    peer_scoring_days: int = 30


def _coerce(raw: str, current: Any) -> Any:
    """Convert an environment string to the type of the current value"""
    if isinstance(current, bool):
        return raw.lower() in ('true', '1', 'yes')
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return raw


@dataclass
class Config:
    """Main configuration"""
    lnd: LNDConfig
    analysis: AnalysisConfig

    # Runtime options
    verbose: bool = False

    def __init__(self, config_file: Optional[str] = None):
        # Load defaults
        self.lnd = LNDConfig()
        self.analysis = AnalysisConfig()
        self.verbose = False

        # Load from environment
        self._load_from_env()

        # Load from config file if provided
        if config_file:
            self._load_from_file(config_file)

    def _load_from_env(self):
        """Load configuration from LNW_* environment variables"""
        load_dotenv()

        for section_name, section in (('LND', self.lnd), ('ANALYSIS', self.analysis)):
            for f in fields(section):
                raw = os.getenv(f"{ENV_PREFIX}{section_name}_{f.name.upper()}")
                if raw is None:
                    continue
                current = getattr(section, f.name)
                setattr(section, f.name, _coerce(raw, current) if current is not None else raw)

        # Shorter aliases for the values set most often
        if os.getenv('LNW_REST_URL'):
            self.lnd.rest_url = os.getenv('LNW_REST_URL')
        if os.getenv('LNW_MACAROON_PATH'):
            self.lnd.macaroon_path = os.getenv('LNW_MACAROON_PATH')
        if os.getenv('LNW_CERT_PATH'):
            self.lnd.cert_path = os.getenv('LNW_CERT_PATH')

        if os.getenv('LNW_VERBOSE'):
            self.verbose = os.getenv('LNW_VERBOSE').lower() in ('true', '1', 'yes')

    def _load_from_file(self, config_file: str):
        """Load configuration from JSON file"""
        path = Path(config_file)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")

        with open(path, 'r') as f:
            data = json.load(f)

        if 'lnd' in data:
            for key, value in data['lnd'].items():
                if hasattr(self.lnd, key):
                    setattr(self.lnd, key, value)

        if 'analysis' in data:
            for key, value in data['analysis'].items():
                if hasattr(self.analysis, key):
                    setattr(self.analysis, key, value)

        if 'verbose' in data:
            self.verbose = data['verbose']

    def save_to_file(self, config_file: str):
        """Save configuration to JSON file"""
        path = Path(config_file)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, config_file: Optional[str] = None) -> 'Config':
        """Load configuration from file or environment"""
        return cls(config_file)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return {
            'lnd': asdict(self.lnd),
            'analysis': asdict(self.analysis),
            'verbose': self.verbose
        }
