"""
SWAPVAULT: Private Swap Vault

Lock assets in a custodial vault, commit to swap terms off-ledger, register
the commitment, and release the agreed output to its recipient exactly once.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                          PRIVATE SWAP VAULT                              │
    │                                                                          │
    │  LEDGER PROGRAMS                                                         │
    │    ledger.py      Account store, asset transfers, atomic transactions    │
    │    vault.py       Vault Custody and its release capability               │
    │    swap.py        Swap Controller: submit_proof, withdraw                │
    │    security.py    Registration and settlement capabilities, audit log    │
    │    layout.py      Byte-exact persisted account layouts                   │
    │                                                                          │
    │  PROOF PIPELINE                                                          │
    │    commitment.py  Swap parameters and the commitment digest              │
    │    guest.py       Guest program run inside the isolated executor         │
    │    receipt.py     Ed25519-sealed attestation receipts                    │
    │    backends.py    Verifiable and direct backends                         │
    │    prover.py      Verifiable-first generation with direct fallback       │
    │    relayer.py     Prove, then register                                   │
    │    intents.py     Persisted queue of swap intents for the relayer        │
    │                                                                          │
    │  SUPPORT                                                                 │
    │    identity.py    32-byte identities, program-derived addresses          │
    │    hardening.py   Validators, checked u64 arithmetic                     │
    │    resilience.py  Timeout, Fallback                                      │
    │    config.py      YAML + environment configuration                       │
    │    observability.py  Structured logging, tracing spans                   │
    │    cli.py         swapvault / swapvault-prove                            │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

__version__ = "0.1.0"

# Lazy imports keep `import swapvault` cheap for spawned guest workers
def __getattr__(name):
    """Lazy import swapvault modules on first access."""

    if name in ("SwapParameters", "compute_commitment", "commitment_digest"):
        from swapvault import commitment
        return getattr(commitment, name)

    if name in ("ProofGenerator", "ProofResult"):
        from swapvault import prover
        return getattr(prover, name)

    if name in ("VerifiableBackend", "DirectBackend", "CommitmentBackend"):
        from swapvault import backends
        return getattr(backends, name)

    if name in ("Receipt", "ExecutorKey"):
        from swapvault import receipt
        return getattr(receipt, name)

    if name in ("HostLedger", "associated_holding_address"):
        from swapvault import ledger
        return getattr(ledger, name)

    if name in ("VaultCustody", "ReleaseCapability"):
        from swapvault import vault
        return getattr(vault, name)

    if name in ("SwapController", "Settlement"):
        from swapvault import swap
        return getattr(swap, name)

    if name in ("SwapRecord", "VaultAccount"):
        from swapvault import layout
        return getattr(layout, name)

    if name in ("Relayer", "SwapTicket"):
        from swapvault import relayer
        return getattr(relayer, name)

    if name in ("IntentQueue", "SwapIntent", "IntentStatus"):
        from swapvault import intents
        return getattr(intents, name)

    if name in ("Pubkey", "find_program_address"):
        from swapvault import identity
        return getattr(identity, name)

    if name in ("OpenRegistration", "RelayerAllowList", "TrustRegistrant",
                "AttestationVerifier", "AuditLogger"):
        from swapvault import security
        return getattr(security, name)

    if name in ("ConfigManager", "get_config"):
        from swapvault import config
        return getattr(config, name)

    if name in ("SwapVaultError", "AlreadyInitialized", "AlreadyExecuted",
                "InvalidRecipient", "InsufficientBalance", "InvalidProofHash",
                "InvalidTokenMint", "BackendDivergence"):
        from swapvault import errors
        return getattr(errors, name)

    raise AttributeError(f"module 'swapvault' has no attribute {name!r}")


__all__ = [
    "__version__",
    "SwapParameters", "compute_commitment", "commitment_digest",
    "ProofGenerator", "ProofResult",
    "VerifiableBackend", "DirectBackend", "CommitmentBackend",
    "Receipt", "ExecutorKey",
    "HostLedger", "associated_holding_address",
    "VaultCustody", "ReleaseCapability",
    "SwapController", "Settlement",
    "SwapRecord", "VaultAccount",
    "Relayer", "SwapTicket",
    "IntentQueue", "SwapIntent", "IntentStatus",
    "Pubkey", "find_program_address",
    "OpenRegistration", "RelayerAllowList", "TrustRegistrant",
    "AttestationVerifier", "AuditLogger",
    "ConfigManager", "get_config",
    "SwapVaultError", "AlreadyInitialized", "AlreadyExecuted",
    "InvalidRecipient", "InsufficientBalance", "InvalidProofHash",
    "InvalidTokenMint", "BackendDivergence",
]
