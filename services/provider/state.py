"""In-memory devnet ledger backing the tool provider.

Balances, nonces, deployed code and the transaction log live here.
All state is in-memory only — no persistence between restarts.
"""

from dataclasses import dataclass, field

from eth_utils import keccak, to_checksum_address

from ethagent.models.accounts import KNOWN_ADDRESSES

WEI_PER_ETHER = 10**18
STARTING_BALANCE = 10_000 * WEI_PER_ETHER

DEV_ACCOUNTS: dict[str, str] = dict(KNOWN_ADDRESSES)

# Token balances seeded for alice, in the token's smallest unit
SEED_TOKENS: dict[str, int] = {"USDC": 5_000 * 10**6, "DAI": 2_500 * 10**18}

TX_GAS = 21_000
CREATE_GAS = 32_000
ZERO_BYTE_GAS = 4
NONZERO_BYTE_GAS = 16


def intrinsic_gas(data: bytes, *, create: bool = False) -> int:
    """Gas charged before execution: base cost plus calldata cost."""
    gas = TX_GAS + (CREATE_GAS if create else 0)
    for byte in data:
        gas += NONZERO_BYTE_GAS if byte else ZERO_BYTE_GAS
    return gas


@dataclass
class Account:
    """An account's ledger entry."""

    balance: int = 0
    nonce: int = 0
    code: bytes = b""
    tokens: dict[str, int] = field(default_factory=dict)


@dataclass
class TransactionRecord:
    """A transaction accepted by the devnet."""

    tx_hash: str
    sender: str
    to: str | None
    value: int
    data: bytes
    gas_used: int
    block_number: int
    contract_address: str | None = None


@dataclass
class DevnetState:
    """Tracks accounts and the transaction log of the simulated chain."""

    block_number: int = 0
    _accounts: dict[str, Account] = field(default_factory=dict)
    _transactions: list[TransactionRecord] = field(default_factory=list)

    @classmethod
    def seeded(cls) -> "DevnetState":
        """A ledger with the development accounts funded."""
        state = cls()
        for address in DEV_ACCOUNTS.values():
            state.account(address).balance = STARTING_BALANCE
        state.account(DEV_ACCOUNTS["alice"]).tokens = dict(SEED_TOKENS)
        return state

    # --- Accounts ---

    def account(self, address: str) -> Account:
        """Return the account for an address, creating an empty one if new."""
        key = address.lower()
        if key not in self._accounts:
            self._accounts[key] = Account()
        return self._accounts[key]

    def balance_of(self, address: str) -> int:
        return self._accounts.get(address.lower(), Account()).balance

    def token_balance_of(self, address: str, token: str) -> int:
        return self._accounts.get(address.lower(), Account()).tokens.get(token.upper(), 0)

    def code_at(self, address: str) -> bytes:
        return self._accounts.get(address.lower(), Account()).code

    def known_tokens(self) -> set[str]:
        tokens: set[str] = set(SEED_TOKENS)
        for account in self._accounts.values():
            tokens.update(account.tokens)
        return tokens

    # --- Transactions ---

    @property
    def transactions(self) -> list[TransactionRecord]:
        return list(self._transactions)

    def apply_transaction(
        self,
        sender: str,
        to: str | None,
        value: int,
        data: bytes,
        gas_used: int,
    ) -> TransactionRecord:
        """Move value, bump the sender nonce and mine the transaction.

        Callers must have checked the sender's balance first.
        """
        account = self.account(sender)
        nonce = account.nonce
        account.balance -= value
        account.nonce += 1

        contract_address: str | None = None
        if to is None:
            contract_address = to_checksum_address(
                keccak(bytes.fromhex(sender[2:]) + nonce.to_bytes(8, "big"))[12:]
            )
            created = self.account(contract_address)
            created.code = data
            created.balance += value
        else:
            self.account(to).balance += value

        self.block_number += 1
        tx_hash = "0x" + keccak(
            bytes.fromhex(sender[2:]) + nonce.to_bytes(8, "big") + data
        ).hex()
        record = TransactionRecord(
            tx_hash=tx_hash,
            sender=sender,
            to=to,
            value=value,
            data=data,
            gas_used=gas_used,
            block_number=self.block_number,
            contract_address=contract_address,
        )
        self._transactions.append(record)
        return record
