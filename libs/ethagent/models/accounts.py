"""Known accounts — names the interpreter resolves and the devnet funds."""

# The first accounts of the default development mnemonic
KNOWN_ADDRESSES: dict[str, str] = {
    "alice": "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
    "bob": "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
    "carol": "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
}


def resolve_name(name: str, book: dict[str, str] | None = None) -> str | None:
    """Return the address for a known account name (case-insensitive)."""
    return (KNOWN_ADDRESSES if book is None else book).get(name.strip().lower())
