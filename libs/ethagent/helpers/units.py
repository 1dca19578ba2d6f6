"""Denomination helpers (ether / gwei / wei)."""

from decimal import Decimal, InvalidOperation

from eth_utils import from_wei, to_wei

UNITS = {"eth": "ether", "ether": "ether", "gwei": "gwei", "wei": "wei"}


def parse_amount(amount: str, unit: str | None = "eth") -> int:
    """Convert a human amount such as `("0.5", "eth")` to wei.

    Raises:
        ValueError: If the amount or unit cannot be parsed, or the amount
            is not a whole number of wei.
    """
    name = UNITS.get((unit or "eth").lower())
    if name is None:
        raise ValueError(f"Unknown unit: {unit!r}")
    try:
        value = Decimal(amount)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if value < 0:
        raise ValueError(f"Negative amount: {amount!r}")
    wei = to_wei(value, name)
    if Decimal(wei) != value * (Decimal(to_wei(1, name))):
        raise ValueError(f"{amount} {unit} is not a whole number of wei")
    return wei


def format_ether(wei: int) -> str:
    """Render a wei amount in ether, e.g. `1.5 ETH`."""
    ether = from_wei(wei, "ether")
    text = format(ether.normalize(), "f") if isinstance(ether, Decimal) else str(ether)
    return f"{text} ETH"
