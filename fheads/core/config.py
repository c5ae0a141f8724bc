"""
Auction configuration parameters.

Defines the criterion count, magnitude bounds that keep every homomorphic
score inside the uint64 plaintext space, the pricing policy and logging.
"""

import json
import os
import tomllib
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from fheads.core.errors import ConfigError
from fheads.utils.validation import MAX_CRITERIA, MAX_UINT64

ENV_PREFIX = "FHEADS_"

PRICING_RULES = ("first-price", "second-price", "fixed", "free")


def max_score(num_criteria: int, max_weight: int) -> int:
    """Largest reachable score: K products of two clamped weights."""
    return num_criteria * max_weight * max_weight


@dataclass
class AuctionConfig:
    """Auction-wide configuration parameters"""

    # Bid shape
    num_criteria: int = 3  # K weights per bid and per query

    # Magnitude bounds (enforced homomorphically by clamping)
    max_weight: int = 2**16 - 1  # Per-criterion weight ceiling
    max_deposit: int = 2**48  # Ceiling on the amount pulled by one bid

    # Settlement
    pricing_rule: str = "first-price"
    fixed_price: int = 0  # Charge used by the "fixed" rule

    # Confidential token metadata (mock deployment)
    token_name: str = "Naraggara"
    token_symbol: str = "NARA"

    # Logging
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_to_file: bool = False

    def __post_init__(self):
        """Reject settings under which a score could wrap modulo 2**64"""
        self.log_dir = Path(self.log_dir)
        if not 1 <= self.num_criteria <= MAX_CRITERIA:
            raise ConfigError(f"num_criteria must be in [1, {MAX_CRITERIA}], got {self.num_criteria}")
        if self.max_weight < 1:
            raise ConfigError(f"max_weight must be positive, got {self.max_weight}")
        if max_score(self.num_criteria, self.max_weight) > MAX_UINT64:
            raise ConfigError(
                f"{self.num_criteria} criteria with max_weight {self.max_weight} overflow uint64 scores"
            )
        if not 1 <= self.max_deposit <= MAX_UINT64:
            raise ConfigError(f"max_deposit must be in [1, 2**64 - 1], got {self.max_deposit}")
        if self.pricing_rule not in PRICING_RULES:
            raise ConfigError(f"Unknown pricing rule: {self.pricing_rule}")
        if not 0 <= self.fixed_price <= MAX_UINT64:
            raise ConfigError(f"fixed_price out of uint64 range: {self.fixed_price}")

    def to_dict(self) -> dict:
        """JSON-serializable view."""
        data = asdict(self)
        data["log_dir"] = str(self.log_dir)
        return data


class AuctionConfigModel(BaseModel):
    """Schema for configuration files and environment overrides."""

    model_config = ConfigDict(extra="forbid")

    num_criteria: int = Field(default=3, ge=1, le=MAX_CRITERIA)
    max_weight: int = Field(default=2**16 - 1, ge=1)
    max_deposit: int = Field(default=2**48, ge=1, le=MAX_UINT64)
    pricing_rule: Literal["first-price", "second-price", "fixed", "free"] = "first-price"
    fixed_price: int = Field(default=0, ge=0, le=MAX_UINT64)
    token_name: str = "Naraggara"
    token_symbol: str = "NARA"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: Path = Path("logs")
    log_to_file: bool = False

    @model_validator(mode="after")
    def _scores_fit_uint64(self):
        if max_score(self.num_criteria, self.max_weight) > MAX_UINT64:
            raise ValueError("num_criteria * max_weight**2 exceeds 2**64 - 1")
        return self


# Global config instance (can be overridden)
config = AuctionConfig()


def _read_file(config_path: Path) -> dict:
    """Parse a JSON or TOML configuration file into a dict."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        if config_path.suffix == ".toml":
            with config_path.open("rb") as fh:
                data = tomllib.load(fh)
        else:
            data = json.loads(config_path.read_text())
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot parse {config_path}: {e}") from e

    # TOML files may nest settings under [auction]
    if isinstance(data, dict) and isinstance(data.get("auction"), dict):
        data = data["auction"]
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")
    return data


def _env_overrides() -> dict:
    """Collect FHEADS_* variables (after loading a .env file, if any)."""
    load_dotenv()
    overrides = {}
    for name in AuctionConfigModel.model_fields:
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    return overrides


def load_config(config_path: Optional[str] = None, use_env: bool = True) -> AuctionConfig:
    """
    Load configuration from file and environment, or use defaults.

    Precedence: environment > file > defaults.

    Args:
        config_path: Optional path to a .json or .toml config file
        use_env: Apply FHEADS_* environment overrides

    Returns:
        AuctionConfig instance
    """
    data = _read_file(Path(config_path)) if config_path else {}
    if use_env:
        data.update(_env_overrides())

    try:
        model = AuctionConfigModel.model_validate(data)
    except ValidationError as e:
        raise ConfigError(str(e)) from e

    return AuctionConfig(**model.model_dump())
