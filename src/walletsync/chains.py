"""Chain families and asset classification.

Two chain families are supported:
- APTOS: account-model ledger holding the self-custody wallet
- EVM: EVM-compatible chain holding the custodial wallet

Balances are displayed under chain-qualified labels such as "USDC (Aptos)".
Only stable assets count towards the portfolio total; native gas tokens are
display-only.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ChainFamily(str, Enum):
    """Distinct ledger protocol, each with its own probe adapter."""

    APTOS = "aptos"
    EVM = "evm"


class CustodyType(str, Enum):
    """Who holds the key material of a wallet."""

    CUSTODIAL = "custodial"
    SELF_CUSTODY = "self_custody"


@dataclass(frozen=True)
class ChainConfig:
    """Static configuration for a chain family."""

    family: ChainFamily
    name: str
    custody_type: CustodyType
    native_symbol: str
    native_decimals: int
    # Native balance is shown even when zero
    always_show_native: bool = False


CHAINS: dict[ChainFamily, ChainConfig] = {
    ChainFamily.APTOS: ChainConfig(
        family=ChainFamily.APTOS,
        name="Aptos",
        custody_type=CustodyType.SELF_CUSTODY,
        native_symbol="APT",
        native_decimals=8,
        always_show_native=True,
    ),
    ChainFamily.EVM: ChainConfig(
        family=ChainFamily.EVM,
        name="EVM",
        custody_type=CustodyType.CUSTODIAL,
        native_symbol="ETH",
        native_decimals=18,
    ),
}

# Gas tokens recognised in EVM provider responses
EVM_NATIVE_SYMBOLS = frozenset({"ETH", "MATIC", "POL", "SOL"})

# Bridged token markers, e.g. "USDC.e"
BRIDGED_SUFFIXES = frozenset({"E", "B"})


def get_chain(family: ChainFamily) -> ChainConfig:
    """Get configuration for a chain family."""
    return CHAINS[family]


def normalize_symbol(symbol: str) -> str:
    """Uppercase a token symbol and strip whitespace."""
    return (symbol or "").strip().upper()


def stable_symbol(symbol: str, stable_symbols: frozenset[str]) -> Optional[str]:
    """Return the stable asset a token symbol denotes, if any.

    Bridged variants such as "USDC.e" resolve to their base symbol.
    """
    sym = normalize_symbol(symbol)
    if sym in stable_symbols:
        return sym
    base, sep, suffix = sym.partition(".")
    if sep and suffix in BRIDGED_SUFFIXES and base in stable_symbols:
        return base
    return None


def chain_label(symbol: str, chain_name: str) -> str:
    """Build the display label for a token on a chain."""
    return f"{normalize_symbol(symbol)} ({chain_name})"
