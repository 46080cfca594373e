"""
Configuration management for the ledger.
"""
import json
import os
from dataclasses import dataclass, asdict

from amm_ledger.safe_math import BPS_DENOMINATOR


@dataclass
class PoolConfig:
    """Pool economics. Fixed into each pool record at creation."""
    fee_bps: int = 30  # 0.30%, kept in the pool
    ratio_tolerance_bps: int = 50
    minimum_liquidity: int = 0  # shares locked on first deposit

    def validate(self):
        if not 0 <= self.fee_bps < BPS_DENOMINATOR:
            raise ValueError(f"fee_bps must be in [0, {BPS_DENOMINATOR}): {self.fee_bps}")
        if not 0 <= self.ratio_tolerance_bps <= BPS_DENOMINATOR:
            raise ValueError(
                f"ratio_tolerance_bps must be in [0, {BPS_DENOMINATOR}]: {self.ratio_tolerance_bps}"
            )
        if self.minimum_liquidity < 0:
            raise ValueError("minimum_liquidity cannot be negative")


@dataclass
class LedgerConfig:
    chain_id: int = 1


@dataclass
class DatabaseConfig:
    """Database configuration."""
    path: str = "./amm_data"
    write_buffer_size: int = 64 * 1024 * 1024  # 64MB
    max_open_files: int = 1000
    compression: str = "snappy"


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""
    host: str = "127.0.0.1"
    port: int = 9090


@dataclass
class Config:
    """Main configuration."""
    pool: PoolConfig
    ledger: LedgerConfig
    database: DatabaseConfig
    monitoring: MonitoringConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            pool=PoolConfig(),
            ledger=LedgerConfig(),
            database=DatabaseConfig(),
            monitoring=MonitoringConfig()
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)

        config = cls(
            pool=PoolConfig(**data.get('pool', {})),
            ledger=LedgerConfig(**data.get('ledger', {})),
            database=DatabaseConfig(**data.get('database', {})),
            monitoring=MonitoringConfig(**data.get('monitoring', {}))
        )
        config.pool.validate()
        return config

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'pool': asdict(self.pool),
            'ledger': asdict(self.ledger),
            'database': asdict(self.database),
            'monitoring': asdict(self.monitoring)
        }
