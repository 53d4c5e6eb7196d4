"""Program-derived address derivation for battle and vault accounts."""

from __future__ import annotations

from dataclasses import dataclass

from solders.pubkey import Pubkey

from wavewarz_analytics.config import DEFAULT_PROGRAM_ID

BATTLE_SEED = b"battle"
VAULT_SEED = b"battle_vault"

_U64_MAX = 2**64 - 1


class InvalidBattleIdError(ValueError):
    """Raised when a battle id is not an unsigned 64-bit integer."""


@dataclass(frozen=True)
class BattleAddresses:
    battle: str
    vault: str


def parse_battle_id(battle_id: int | str) -> int:
    """Normalize a battle id to an int in the u64 range.

    Accepts ints and decimal strings (surrounding whitespace allowed).
    """
    if isinstance(battle_id, bool):
        raise InvalidBattleIdError(f"battle id must be numeric, got {battle_id!r}")
    if isinstance(battle_id, int):
        value = battle_id
    elif isinstance(battle_id, str):
        text = battle_id.strip()
        if not text.isdigit() or not text.isascii():
            raise InvalidBattleIdError(f"battle id must be a non-negative integer, got {battle_id!r}")
        value = int(text)
    else:
        raise InvalidBattleIdError(f"battle id must be int or str, got {type(battle_id).__name__}")

    if value < 0 or value > _U64_MAX:
        raise InvalidBattleIdError(f"battle id {value} does not fit in an unsigned 64-bit integer")
    return value


def _program_pubkey(program_id: str | Pubkey) -> Pubkey:
    return program_id if isinstance(program_id, Pubkey) else Pubkey.from_string(program_id)


def _derive(seed: bytes, battle_id: int | str, program_id: str | Pubkey) -> str:
    id_bytes = parse_battle_id(battle_id).to_bytes(8, "little")
    address, _bump = Pubkey.find_program_address([seed, id_bytes], _program_pubkey(program_id))
    return str(address)


def derive_battle_address(battle_id: int | str, program_id: str | Pubkey = DEFAULT_PROGRAM_ID) -> str:
    """Derive the battle account address (seeds: "battle", u64 LE id)."""
    return _derive(BATTLE_SEED, battle_id, program_id)


def derive_vault_address(battle_id: int | str, program_id: str | Pubkey = DEFAULT_PROGRAM_ID) -> str:
    """Derive the battle vault address (seeds: "battle_vault", u64 LE id)."""
    return _derive(VAULT_SEED, battle_id, program_id)


def derive_battle_addresses(
    battle_id: int | str,
    program_id: str | Pubkey = DEFAULT_PROGRAM_ID,
) -> BattleAddresses:
    program = _program_pubkey(program_id)
    return BattleAddresses(
        battle=derive_battle_address(battle_id, program),
        vault=derive_vault_address(battle_id, program),
    )
