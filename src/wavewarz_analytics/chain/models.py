"""Data models for transaction-history API payloads."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

LAMPORTS_PER_SOL = Decimal(1_000_000_000)


def lamports_to_sol(lamports: int) -> Decimal:
    """Convert integer lamports to SOL."""
    return Decimal(lamports) / LAMPORTS_PER_SOL


@dataclass(frozen=True)
class NativeTransfer:
    """A single native SOL transfer leg inside a transaction."""

    from_address: str
    to_address: str
    lamports: int

    @property
    def amount_sol(self) -> Decimal:
        return lamports_to_sol(self.lamports)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NativeTransfer:
        """Create a NativeTransfer from an enhanced-transaction `nativeTransfers` item."""
        return cls(
            from_address=str(data.get("fromUserAccount") or ""),
            to_address=str(data.get("toUserAccount") or ""),
            lamports=abs(int(data.get("amount") or 0)),
        )


@dataclass(frozen=True)
class AddressTransaction:
    """One transaction from an address's history, reduced to what the core reads."""

    signature: str
    timestamp: datetime
    native_transfers: tuple[NativeTransfer, ...] = ()
    account_keys: tuple[str, ...] = ()
    program_ids: tuple[str, ...] = ()

    def involves_program(self, program_id: str) -> bool:
        """Whether the program appears among touched accounts or instruction programs."""
        return program_id in self.account_keys or program_id in self.program_ids

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AddressTransaction:
        """Create an AddressTransaction from an enhanced-transaction API item."""
        signature = data.get("signature")
        if not signature:
            raise ValueError("transaction payload has no signature")

        transfers = tuple(
            NativeTransfer.from_dict(t) for t in (data.get("nativeTransfers") or [])
        )
        account_keys = tuple(
            str(a["account"]) for a in (data.get("accountData") or []) if a.get("account")
        )

        program_ids: list[str] = []
        for ix in data.get("instructions") or []:
            if ix.get("programId"):
                program_ids.append(str(ix["programId"]))
            for inner in ix.get("innerInstructions") or []:
                if inner.get("programId"):
                    program_ids.append(str(inner["programId"]))

        return cls(
            signature=str(signature),
            timestamp=datetime.fromtimestamp(int(data.get("timestamp") or 0), tz=UTC),
            native_transfers=transfers,
            account_keys=account_keys,
            program_ids=tuple(program_ids),
        )
