#!/usr/bin/env python3
"""
SWAPVAULT CLI

Two entry points:

    swapvault-prove
        Reads INPUT_AMOUNT, OUTPUT_AMOUNT, INPUT_MINT, OUTPUT_MINT and
        RECIPIENT from the environment (defaults below), generates the
        commitment and writes exactly one line to stdout:

            PROOF_HASH:<lowercase hex digest>

        Exit status is 0 whether the verifiable or the direct backend
        produced the digest, 2 when an input cannot be parsed (nothing is
        computed), 1 on any other failure. A verified digest the direct
        recomputation disagrees with (BackendDivergence) also exits 1: no
        digest is printed rather than one the backends dispute. Logs go to
        stderr.

    swapvault <command> [subcommand] [options]
        prove             same computation, options override the environment
        receipt verify    check a receipt file against the guest image
        config            get / set / show / validate / schema

Both load ./swapvault.yaml when it exists; the admin CLI takes --config
instead when given.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Any, List, Mapping, Optional

from swapvault import __version__
from swapvault.commitment import SwapParameters
from swapvault.config import ConfigError, get_config, get_config_manager
from swapvault.errors import SwapVaultError
from swapvault.hardening import ValidationErrors, Validators
from swapvault.identity import Pubkey
from swapvault.observability import Layer, configure_logging, get_correlation_id, get_logger


logger = get_logger("cli", Layer.CLI)

EXIT_OK = 0
EXIT_FAILURE = 1  # includes a cross-check BackendDivergence
EXIT_BAD_INPUT = 2

ENV_DEFAULTS = {
    "INPUT_AMOUNT": "1000000",
    "OUTPUT_AMOUNT": "950000",
    "INPUT_MINT": "So11111111111111111111111111111111111111112",
    "OUTPUT_MINT": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "RECIPIENT": "11111111111111111111111111111111",
}


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = EXIT_FAILURE):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        import yaml
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


# =============================================================================
# PARAMETER PARSING
# =============================================================================

def _parse_amount(name: str, raw: str) -> int:
    try:
        return Validators.validate_u64(raw.strip(), name.lower()).unwrap()
    except ValidationErrors as e:
        raise CLIError(f"{name}: {e.errors[0].message} ({raw!r})", EXIT_BAD_INPUT)


def _parse_identity(name: str, raw: str) -> Pubkey:
    try:
        return Pubkey.from_base58(raw)
    except ValueError as e:
        raise CLIError(f"{name}: {e} ({raw!r})", EXIT_BAD_INPUT)


def parameters_from_env(environ: Optional[Mapping[str, str]] = None) -> SwapParameters:
    """
    Build SwapParameters from environment variables.

    Unset variables take ENV_DEFAULTS. Malformed values raise CLIError with
    exit code 2.
    """
    env = os.environ if environ is None else environ
    values = {name: env.get(name, default) for name, default in ENV_DEFAULTS.items()}
    return SwapParameters(
        input_amount=_parse_amount("INPUT_AMOUNT", values["INPUT_AMOUNT"]),
        output_amount=_parse_amount("OUTPUT_AMOUNT", values["OUTPUT_AMOUNT"]),
        input_asset=_parse_identity("INPUT_MINT", values["INPUT_MINT"]),
        output_asset=_parse_identity("OUTPUT_MINT", values["OUTPUT_MINT"]),
        recipient=_parse_identity("RECIPIENT", values["RECIPIENT"]),
    )


def _setup_logging() -> None:
    obs = get_config().observability
    try:
        configure_logging(level=obs.log_level.get(), fmt=obs.log_format.get())
    except ConfigError as e:
        raise CLIError(e.message, EXIT_BAD_INPUT)


# =============================================================================
# PROOF ENTRY POINT
# =============================================================================

def prove_main(environ: Optional[Mapping[str, str]] = None) -> int:
    """Environment-driven proof generation. Returns the exit status."""
    from swapvault.prover import ProofGenerator

    try:
        get_config_manager().load_defaults()
        _setup_logging()
        params = parameters_from_env(environ)
        prover = ProofGenerator.from_config()
    except CLIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_BAD_INPUT

    get_correlation_id()
    try:
        result = prover.generate(params)
    except SwapVaultError as e:
        logger.error(
            "proof generation failed",
            operation="prove",
            error_code=str(e.code),
            error=e.name,
            details={k: str(v) for k, v in e.details.items()},
        )
        return EXIT_FAILURE

    sys.stdout.write(f"PROOF_HASH:{result.digest_hex}\n")
    sys.stdout.flush()
    return EXIT_OK


# =============================================================================
# ADMIN CLI
# =============================================================================

class SwapVaultCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="swapvault",
            description="Private swap vault tooling",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"swapvault {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml", "text"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--config", "-c",
            help="YAML configuration file",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        self._register_prove_command()
        self._register_receipt_commands()
        self._register_config_commands()

    def _register_prove_command(self) -> None:
        prove = self.subparsers.add_parser("prove", help="Generate a swap commitment")
        prove.add_argument("--input-amount", help="Overrides INPUT_AMOUNT")
        prove.add_argument("--output-amount", help="Overrides OUTPUT_AMOUNT")
        prove.add_argument("--input-mint", help="Overrides INPUT_MINT")
        prove.add_argument("--output-mint", help="Overrides OUTPUT_MINT")
        prove.add_argument("--recipient", help="Overrides RECIPIENT")
        prove.add_argument(
            "--direct", action="store_true", help="Skip the verifiable backend"
        )
        prove.add_argument("--receipt-out", help="Write the receipt JSON here")

    def _register_receipt_commands(self) -> None:
        receipt = self.subparsers.add_parser("receipt", help="Attestation receipts")
        receipt_sub = receipt.add_subparsers(dest="subcommand")

        verify = receipt_sub.add_parser("verify", help="Verify a receipt file")
        verify.add_argument("path", help="Receipt JSON file")
        verify.add_argument(
            "--trusted-key",
            action="append",
            default=[],
            help="Hex executor public key to accept (repeatable)",
        )

    def _register_config_commands(self) -> None:
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Dotted path, e.g. prover.isolation")

        set_cmd = config_sub.add_parser("set", help="Set configuration value")
        set_cmd.add_argument("path", help="Dotted path")
        set_cmd.add_argument("value", help="YAML scalar value")

        config_sub.add_parser("show", help="Show all configuration")
        config_sub.add_parser("validate", help="Validate configuration")
        config_sub.add_parser("schema", help="Export configuration schema")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return EXIT_OK

        try:
            if parsed.config:
                get_config_manager().load_from_file(parsed.config)
            else:
                get_config_manager().load_defaults()
            _setup_logging()
            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return EXIT_OK

        except CLIError as e:
            print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except ConfigError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return EXIT_BAD_INPUT

        except SwapVaultError as e:
            print(f"Error: {e.name}: {e.message}", file=sys.stderr)
            return EXIT_FAILURE

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}".rstrip())

        return handler(args)

    # Prove handler
    def _handle_prove(self, args: argparse.Namespace) -> Any:
        from swapvault.prover import ProofGenerator

        env = dict(os.environ)
        overrides = {
            "INPUT_AMOUNT": args.input_amount,
            "OUTPUT_AMOUNT": args.output_amount,
            "INPUT_MINT": args.input_mint,
            "OUTPUT_MINT": args.output_mint,
            "RECIPIENT": args.recipient,
        }
        env.update({k: v for k, v in overrides.items() if v is not None})
        params = parameters_from_env(env)

        if args.direct:
            prover = ProofGenerator(verifiable=None, cross_check=False)
        else:
            prover = ProofGenerator.from_config()
        result = prover.generate(params)

        if args.receipt_out and result.receipt is not None:
            Path(args.receipt_out).write_text(
                json.dumps(result.receipt.to_dict(), indent=2) + "\n"
            )
        return {"parameters": params.to_dict(), **result.to_dict()}

    # Receipt handlers
    def _handle_receipt_verify(self, args: argparse.Namespace) -> Any:
        from swapvault.guest import IMAGE_ID
        from swapvault.receipt import Receipt

        try:
            data = json.loads(Path(args.path).read_text())
        except (OSError, ValueError) as e:
            raise CLIError(f"Cannot read receipt: {e}", EXIT_BAD_INPUT)

        try:
            trusted = [bytes.fromhex(k) for k in args.trusted_key] or None
        except ValueError as e:
            raise CLIError(f"Bad --trusted-key: {e}", EXIT_BAD_INPUT)

        receipt = Receipt.from_dict(data)
        receipt.verify(IMAGE_ID, trusted_keys=trusted)
        return {"valid": True, "digest": receipt.digest.hex(), "image_id": IMAGE_ID.hex()}

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        return {"path": args.path, "value": get_config_manager().get(args.path)}

    def _handle_config_set(self, args: argparse.Namespace) -> Any:
        import yaml

        value = yaml.safe_load(args.value)
        get_config_manager().set(args.path, value)
        return {"path": args.path, "value": value, "status": "updated"}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        return get_config_manager().config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        errors = get_config_manager().validate()
        if errors:
            raise CLIError("; ".join(errors), EXIT_BAD_INPUT)
        return {"valid": True}

    def _handle_config_schema(self, args: argparse.Namespace) -> Any:
        return get_config_manager().export_schema()


def main() -> int:
    """CLI entry point."""
    return SwapVaultCLI().run()


if __name__ == "__main__":
    sys.exit(main())
