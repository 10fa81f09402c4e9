"""Shared identities for the test suite."""

from swapvault.identity import Pubkey


PROGRAM_ID = Pubkey.from_base58("Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS")
SOL_MINT = Pubkey.from_base58("So11111111111111111111111111111111111111112")
USDC_MINT = Pubkey.from_base58("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v")


def funded_user(ledger, mint=USDC_MINT, amount=1_000_000):
    """A fresh identity holding amount of mint."""
    user = Pubkey.new_unique()
    ledger.mint_to(user, mint, amount)
    return user
