"""Chain access layer - address derivation, account decoding and history fetching."""

from wavewarz_analytics.chain.addresses import (
    BattleAddresses,
    InvalidBattleIdError,
    derive_battle_address,
    derive_battle_addresses,
    derive_vault_address,
)
from wavewarz_analytics.chain.client import (
    ChainClientError,
    RetryError,
    RetryPolicy,
    SolanaClient,
    TransientNetworkError,
)
from wavewarz_analytics.chain.decoder import (
    BATTLE_ACCOUNT_SIZE,
    BattleDecodeError,
    DecodedBattleAccount,
    decode_battle_account,
)
from wavewarz_analytics.chain.models import AddressTransaction, NativeTransfer

__all__ = [
    "BATTLE_ACCOUNT_SIZE",
    "AddressTransaction",
    "BattleAddresses",
    "BattleDecodeError",
    "ChainClientError",
    "DecodedBattleAccount",
    "InvalidBattleIdError",
    "NativeTransfer",
    "RetryError",
    "RetryPolicy",
    "SolanaClient",
    "TransientNetworkError",
    "decode_battle_account",
    "derive_battle_address",
    "derive_battle_addresses",
    "derive_vault_address",
]
