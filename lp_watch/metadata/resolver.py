from __future__ import annotations

import struct
from dataclasses import dataclass

from loguru import logger
from solana.rpc.api import Client
from solders.pubkey import Pubkey

from lp_watch.config import TOKEN_METADATA_PROGRAM_ID, AppSettings
from lp_watch.errors import DeserializationError, RpcError
from lp_watch.metadata.cache import MetadataCache
from lp_watch.models import TokenMetadata

METADATA_PROGRAM = Pubkey.from_string(TOKEN_METADATA_PROGRAM_ID)
METADATA_SEED = b"metadata"

# Metaplex Key enum value for a v1 Metadata account
KEY_METADATA_V1 = 4
# key (1) + update_authority (32) + mint (32)
_NAME_OFFSET = 65


def derive_metadata_address(mint: Pubkey, program_id: Pubkey = METADATA_PROGRAM) -> Pubkey:
    pda, _bump = Pubkey.find_program_address(
        [METADATA_SEED, bytes(program_id), bytes(mint)], program_id
    )
    return pda


def trim_padding(value: str) -> str:
    return value.rstrip("\0")


def _read_string(data: bytes, offset: int, mint: Pubkey, field: str) -> tuple[str, int]:
    try:
        (length,) = struct.unpack_from("<I", data, offset)
    except struct.error as e:
        raise DeserializationError(mint, f"metadata {field} length missing") from e
    start = offset + 4
    end = start + length
    if end > len(data):
        raise DeserializationError(mint, f"metadata {field} overruns account data")
    try:
        return data[start:end].decode("utf-8"), end
    except UnicodeDecodeError as e:
        raise DeserializationError(mint, f"metadata {field} is not utf-8") from e


def parse_metadata(data: bytes, mint: Pubkey) -> TokenMetadata:
    """Parse name and symbol out of a borsh-encoded Metaplex Metadata account."""
    if not data:
        raise DeserializationError(mint, "metadata account is empty")
    if data[0] != KEY_METADATA_V1:
        raise DeserializationError(mint, f"unexpected metadata key {data[0]}")
    if len(data) < _NAME_OFFSET:
        raise DeserializationError(mint, "metadata header truncated")
    name, offset = _read_string(data, _NAME_OFFSET, mint, "name")
    symbol, _ = _read_string(data, offset, mint, "symbol")
    return TokenMetadata(name=trim_padding(name), symbol=trim_padding(symbol))


@dataclass
class MetadataResolver:
    client: Client
    program_id: Pubkey = METADATA_PROGRAM
    cache: MetadataCache | None = None

    @classmethod
    def create(cls, settings: AppSettings) -> MetadataResolver:
        if not settings.solana_rpc:
            logger.warning("SOLANA_RPC is not set; token metadata lookups will fail")
        cache = None
        if settings.metadata_cache_ttl_sec > 0:
            cache = MetadataCache(
                ttl_sec=settings.metadata_cache_ttl_sec,
                negative_ttl_sec=settings.metadata_negative_ttl_sec,
                max_entries=settings.metadata_cache_size,
            )
        return cls(
            client=Client(settings.solana_rpc),
            program_id=Pubkey.from_string(settings.token_metadata_program_id),
            cache=cache,
        )

    def resolve(self, mint: Pubkey) -> TokenMetadata:
        if self.cache is not None:
            return self.cache.get_or_load(mint, self.fetch)
        return self.fetch(mint)

    def fetch(self, mint: Pubkey) -> TokenMetadata:
        pda = derive_metadata_address(mint, self.program_id)
        logger.debug("Derived Metadata PDA: {}", pda)
        try:
            resp = self.client.get_account_info(pda)
        except Exception as e:
            raise RpcError(mint, f"get_account_info({pda}) failed: {e}") from e
        account = resp.value
        if account is None:
            raise RpcError(mint, f"metadata account {pda} not found")
        if account.owner != self.program_id:
            logger.warning(
                "Account owner ({}) is not the Token Metadata Program ID ({}).",
                account.owner,
                self.program_id,
            )
        return parse_metadata(bytes(account.data), mint)
