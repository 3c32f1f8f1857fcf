"""
dsc - Collateralized Stablecoin Engine

Collateral bookkeeping, oracle-driven valuation, health-factor solvency checks
and liquidation for a stablecoin minted against deposited collateral.

Usage:
    from dsc import DSCEngine, Token, Stablecoin, StaticPriceOracle, PRECISION

    weth = Token("WETH", "Wrapped Ether")
    oracle = StaticPriceOracle({"WETH": 2000_00000000})   # $2000, 8 decimals
    dsc = Stablecoin()
    engine = DSCEngine([weth], [oracle], dsc)
    dsc.transfer_ownership(engine.address)

    # Deposit 1 WETH and mint 1000 DSC (exactly at the 200% requirement)
    weth.mint_to("alice", 10**18)
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10**18, 1000 * PRECISION)
    assert engine.get_health_factor("alice") == PRECISION
"""

# Core types
from .core import (
    PriceOracle,
    AssetToken,
    StablecoinLedger,
    Journaled,
    EngineView,
    OracleQuote,
    CollateralAsset,
    EngineConfig,
    EngineEvent,
    EventType,
    AccountInformation,
    mul_div_down,
    mul_div_up,
    to_decimal,
    from_decimal,
    # Constants
    PRECISION,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_PRECISION,
    LIQUIDATION_BONUS,
    DEFAULT_TOKEN_DECIMALS,
    DEFAULT_FEED_DECIMALS,
    ENGINE_ACCOUNT,
    RISK_STATUS_HEALTHY,
    RISK_STATUS_AT_RISK,
    RISK_STATUS_LIQUIDATABLE,
    # Exceptions
    DSCError,
    InvalidAmount,
    AssetNotAllowed,
    ConfigurationMismatch,
    ConfigurationError,
    TransferFailed,
    MintFailed,
    BurnFailed,
    InsufficientCollateral,
    InsufficientDebt,
    HealthFactorBroken,
    HealthFactorOk,
    HealthFactorNotImproved,
    OracleUnavailable,
    InvalidPrice,
    StalePrice,
    Reentrant,
    InsufficientBalance,
    NotOwner,
)

# Pricing
from .pricing_source import (
    StaticPriceOracle,
    TimeSeriesPriceOracle,
    OracleAdapter,
)

# Ledgers
from .positions import CollateralLedger, DebtLedger

# Valuation
from .valuation import (
    ValuationService,
    calculate_usd_value,
    calculate_token_amount,
    calculate_collateral_value,
)

# Risk
from .risk import (
    RiskEngine,
    RiskSnapshot,
    calculate_adjusted_collateral,
    calculate_health_factor,
    calculate_max_mintable,
    calculate_required_collateral_value,
)

# Liquidation
from .liquidation import (
    LiquidationEngine,
    LiquidationPlan,
    calculate_bonus_collateral,
    calculate_liquidation,
)

# Engine
from .engine import DSCEngine

# Collaborators
from .tokens import Token, Stablecoin, ZERO_ACCOUNT

# Stress analytics
from .stress import health_factor_under_shocks, liquidation_price

__all__ = [
    # Core
    'PriceOracle', 'AssetToken', 'StablecoinLedger', 'Journaled', 'EngineView',
    'OracleQuote', 'CollateralAsset', 'EngineConfig', 'EngineEvent', 'EventType',
    'AccountInformation',
    'mul_div_down', 'mul_div_up', 'to_decimal', 'from_decimal',
    'PRECISION', 'MIN_HEALTH_FACTOR', 'MAX_HEALTH_FACTOR',
    'LIQUIDATION_THRESHOLD', 'LIQUIDATION_PRECISION', 'LIQUIDATION_BONUS',
    'DEFAULT_TOKEN_DECIMALS', 'DEFAULT_FEED_DECIMALS', 'ENGINE_ACCOUNT',
    'RISK_STATUS_HEALTHY', 'RISK_STATUS_AT_RISK', 'RISK_STATUS_LIQUIDATABLE',
    # Exceptions
    'DSCError', 'InvalidAmount', 'AssetNotAllowed', 'ConfigurationMismatch',
    'ConfigurationError', 'TransferFailed', 'MintFailed', 'BurnFailed',
    'InsufficientCollateral', 'InsufficientDebt', 'HealthFactorBroken',
    'HealthFactorOk', 'HealthFactorNotImproved', 'OracleUnavailable',
    'InvalidPrice', 'StalePrice', 'Reentrant', 'InsufficientBalance', 'NotOwner',
    # Pricing
    'StaticPriceOracle', 'TimeSeriesPriceOracle', 'OracleAdapter',
    # Ledgers
    'CollateralLedger', 'DebtLedger',
    # Valuation
    'ValuationService', 'calculate_usd_value', 'calculate_token_amount',
    'calculate_collateral_value',
    # Risk
    'RiskEngine', 'RiskSnapshot', 'calculate_adjusted_collateral',
    'calculate_health_factor', 'calculate_max_mintable',
    'calculate_required_collateral_value',
    # Liquidation
    'LiquidationEngine', 'LiquidationPlan', 'calculate_bonus_collateral',
    'calculate_liquidation',
    # Engine
    'DSCEngine',
    # Collaborators
    'Token', 'Stablecoin', 'ZERO_ACCOUNT',
    # Stress
    'health_factor_under_shocks', 'liquidation_price',
]

__version__ = '1.0.0'
