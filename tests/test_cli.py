"""
CLI tests: the environment-driven proof entry point and the admin commands.

Copyright (c) 2026 Momentum. All rights reserved.
"""

import json

import pytest
import yaml

from swapvault.cli import (
    ENV_DEFAULTS,
    EXIT_BAD_INPUT,
    EXIT_FAILURE,
    EXIT_OK,
    CLIError,
    SwapVaultCLI,
    parameters_from_env,
    prove_main,
)
from swapvault.backends import DirectBackend
from swapvault.commitment import compute_commitment
from swapvault.config import get_config
from swapvault.errors import BackendDivergence
from swapvault.identity import Pubkey
from swapvault.prover import ProofGenerator
from swapvault.receipt import ExecutorKey


@pytest.fixture(autouse=True)
def _thread_isolation(monkeypatch):
    monkeypatch.setenv("SWAPVAULT_PROVER_ISOLATION", "thread")
    monkeypatch.setenv("SWAPVAULT_LOG_LEVEL", "warning")


# =============================================================================
# PARAMETERS
# =============================================================================

class TestParametersFromEnv:
    def test_defaults(self):
        params = parameters_from_env({})
        assert params.input_amount == 1_000_000
        assert params.output_amount == 950_000
        assert params.input_asset.to_base58() == ENV_DEFAULTS["INPUT_MINT"]
        assert params.output_asset.to_base58() == ENV_DEFAULTS["OUTPUT_MINT"]
        assert params.recipient == Pubkey.default()

    def test_overrides(self):
        recipient = Pubkey.new_unique()
        params = parameters_from_env({"OUTPUT_AMOUNT": "7", "RECIPIENT": str(recipient)})
        assert params.output_amount == 7
        assert params.recipient == recipient

    @pytest.mark.parametrize("name,raw", [
        ("INPUT_AMOUNT", "abc"),
        ("INPUT_AMOUNT", "-1"),
        ("OUTPUT_AMOUNT", "18446744073709551616"),
        ("INPUT_MINT", "not-base58!"),
        ("OUTPUT_MINT", "111"),
        ("RECIPIENT", ""),
    ])
    def test_malformed_value(self, name, raw):
        with pytest.raises(CLIError) as exc:
            parameters_from_env({name: raw})
        assert exc.value.exit_code == EXIT_BAD_INPUT
        assert name in str(exc.value)


# =============================================================================
# PROVE ENTRY POINT
# =============================================================================

class TestProveMain:
    def test_single_line_on_stdout(self, capsys):
        assert prove_main({}) == EXIT_OK

        out = capsys.readouterr().out
        expected = compute_commitment(parameters_from_env({})).hex()
        assert out == f"PROOF_HASH:{expected}\n"

    def test_unverified_path_still_succeeds(self, capsys, monkeypatch):
        monkeypatch.setenv("SWAPVAULT_PROVER_VERIFIABLE", "false")
        assert prove_main({}) == EXIT_OK
        out = capsys.readouterr().out
        assert out.startswith("PROOF_HASH:")
        assert len(out.strip().split(":", 1)[1]) == 64

    def test_degenerate_input_falls_back(self, capsys):
        env = {"INPUT_MINT": ENV_DEFAULTS["OUTPUT_MINT"]}
        assert prove_main(env) == EXIT_OK
        expected = compute_commitment(parameters_from_env(env)).hex()
        assert capsys.readouterr().out == f"PROOF_HASH:{expected}\n"

    def test_bad_input_exits_2(self, capsys):
        assert prove_main({"OUTPUT_AMOUNT": "lots"}) == EXIT_BAD_INPUT
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "OUTPUT_AMOUNT" in captured.err

    def test_bad_configuration_exits_2(self, capsys, monkeypatch):
        monkeypatch.setenv("SWAPVAULT_PROVER_TIMEOUT", "never")
        assert prove_main({}) == EXIT_BAD_INPUT
        assert capsys.readouterr().out == ""

    def test_reads_working_directory_config(self, capsys, monkeypatch, tmp_path):
        (tmp_path / "swapvault.yaml").write_text(
            yaml.safe_dump({"prover": {"verifiable_enabled": False}})
        )
        monkeypatch.chdir(tmp_path)

        assert prove_main({}) == EXIT_OK
        captured = capsys.readouterr()
        assert captured.out.startswith("PROOF_HASH:")
        assert "commitment produced without attestation" in captured.err
        assert get_config().prover.verifiable_enabled.get() is False

    def test_invalid_working_directory_config_exits_2(self, capsys, monkeypatch, tmp_path):
        (tmp_path / "swapvault.yaml").write_text(yaml.safe_dump({"prover": {"isolation": "vm"}}))
        monkeypatch.chdir(tmp_path)

        assert prove_main({}) == EXIT_BAD_INPUT
        assert capsys.readouterr().out == ""

    def test_cross_check_divergence_exits_1(self, capsys, monkeypatch):
        monkeypatch.setattr(DirectBackend, "commit", lambda self, params: (b"\x00" * 32, None))

        assert prove_main({}) == EXIT_FAILURE
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "backends disagree on commitment" in captured.err

    def test_generation_failure_exits_1(self, capsys, monkeypatch):
        def diverge(self, params):
            raise BackendDivergence(verifiable="00", direct="11")

        monkeypatch.setattr(ProofGenerator, "generate", diverge)
        assert prove_main({}) == EXIT_FAILURE
        assert capsys.readouterr().out == ""


# =============================================================================
# ADMIN CLI
# =============================================================================

class TestSwapVaultCLI:
    def run(self, capsys, *argv):
        code = SwapVaultCLI().run(list(argv))
        return code, capsys.readouterr()

    def test_no_command_prints_help(self, capsys):
        code, captured = self.run(capsys)
        assert code == EXIT_OK
        assert "swapvault" in captured.out

    def test_prove_json(self, capsys):
        code, captured = self.run(capsys, "prove", "--output-amount", "5")
        assert code == EXIT_OK
        data = json.loads(captured.out)
        assert data["parameters"]["output_amount"] == 5
        assert data["verified"] is True
        assert data["backend"] == "verifiable"

    def test_prove_direct(self, capsys):
        code, captured = self.run(capsys, "prove", "--direct")
        data = json.loads(captured.out)
        assert data["backend"] == "direct"
        assert data["digest"] == compute_commitment(parameters_from_env({})).hex()

    def test_prove_bad_option(self, capsys):
        code, captured = self.run(capsys, "prove", "--recipient", "0")
        assert code == EXIT_BAD_INPUT
        assert "RECIPIENT" in captured.err

    def test_receipt_round_trip(self, capsys, tmp_path):
        out = tmp_path / "receipt.json"
        code, _ = self.run(capsys, "prove", "--receipt-out", str(out))
        assert code == EXIT_OK
        assert out.exists()

        code, captured = self.run(capsys, "receipt", "verify", str(out))
        assert code == EXIT_OK
        assert json.loads(captured.out)["valid"] is True

    def test_receipt_untrusted_key(self, capsys, tmp_path):
        out = tmp_path / "receipt.json"
        self.run(capsys, "prove", "--receipt-out", str(out))
        other = ExecutorKey.generate().public_bytes.hex()

        code, captured = self.run(capsys, "receipt", "verify", str(out), "--trusted-key", other)
        assert code == EXIT_FAILURE
        assert "AttestationError" in captured.err

    def test_receipt_unreadable(self, capsys, tmp_path):
        path = tmp_path / "junk.json"
        path.write_text("{not json")
        code, _ = self.run(capsys, "receipt", "verify", str(path))
        assert code == EXIT_BAD_INPUT

    def test_config_show_yaml(self, capsys):
        code, captured = self.run(capsys, "--format", "yaml", "config", "show")
        assert code == EXIT_OK
        assert yaml.safe_load(captured.out)["prover"]["isolation"] == "thread"

    def test_config_get(self, capsys):
        code, captured = self.run(capsys, "config", "get", "security.registration")
        assert json.loads(captured.out) == {"path": "security.registration", "value": "open"}

    def test_config_set_parses_yaml_scalars(self, capsys):
        code, captured = self.run(capsys, "config", "set", "prover.cross_check", "false")
        assert code == EXIT_OK
        assert json.loads(captured.out)["value"] is False

    def test_config_set_rejects_bad_value(self, capsys):
        code, _ = self.run(capsys, "config", "set", "prover.timeout_seconds", "-1")
        assert code == EXIT_BAD_INPUT

    def test_config_file_option(self, capsys, tmp_path):
        path = tmp_path / "swapvault.yaml"
        path.write_text(yaml.safe_dump({"security": {"settlement": "attestation"}}))
        code, captured = self.run(
            capsys, "--config", str(path), "config", "get", "security.settlement"
        )
        assert json.loads(captured.out)["value"] == "attestation"

    def test_working_directory_config(self, capsys, monkeypatch, tmp_path):
        (tmp_path / "swapvault.yaml").write_text(
            yaml.safe_dump({"security": {"settlement": "attestation"}})
        )
        monkeypatch.chdir(tmp_path)

        code, captured = self.run(capsys, "config", "get", "security.settlement")
        assert code == EXIT_OK
        assert json.loads(captured.out)["value"] == "attestation"

    def test_config_validate(self, capsys, monkeypatch):
        code, _ = self.run(capsys, "config", "validate")
        assert code == EXIT_OK

        monkeypatch.setenv("SWAPVAULT_SETTLEMENT", "blind")
        code, captured = self.run(capsys, "config", "validate")
        assert code == EXIT_BAD_INPUT
        assert "security.settlement" in captured.err

    def test_config_schema(self, capsys):
        code, captured = self.run(capsys, "config", "schema")
        schema = json.loads(captured.out)
        assert schema["properties"]["prover"]["isolation"]["env_var"] == "SWAPVAULT_PROVER_ISOLATION"
