import json
import os

import pytest

from erc8004_register.chain_client import ChainClient
from erc8004_register.config import BASE_SEPOLIA
from erc8004_register.encoding import decode_data_uri
from erc8004_register.events import Resolved, Unresolved, encode_registered_log
from erc8004_register.exceptions import (
    ChainIdMismatchError,
    ConfigurationError,
    ConfirmationTimeout,
    FundsError,
    InputError,
    NetworkError,
    NonceError,
    PersistenceError,
    TransactionRejected,
)
from erc8004_register.models import SubmissionReceipt
from erc8004_register.workflow import Phase, RegistrationState, RegistrationWorkflow

REGISTRY = BASE_SEPOLIA.identity_registry
LOCATOR = "eip155:84532:0x8004AA63c570c570eBF15376c0dB199918BFe9Fb"
OWNER = "0x000000000000000000000000000000000000dEaD"
TX_HASH = "0x" + "cd" * 32


class FakeChainClient(ChainClient):
    def __init__(self, agent_id=42, logs=None, submit_error=None, wait_error=None, verify_error=None) -> None:
        self.agent_id = agent_id
        self.logs = logs
        self.submit_error = submit_error
        self.wait_error = wait_error
        self.verify_error = verify_error
        self.calls = []

    @property
    def signer_address(self) -> str:
        return OWNER

    def verify_network(self):
        self.calls.append(("verify",))
        if self.verify_error is not None:
            raise self.verify_error
        return BASE_SEPOLIA.chain_id

    def submit_transaction(self, target, function_signature, args):
        self.calls.append(("submit", target, function_signature, list(args)))
        if self.submit_error is not None:
            raise self.submit_error
        return TX_HASH

    def wait_for_receipt(self, tx_hash, timeout):
        self.calls.append(("wait", tx_hash, timeout))
        if self.wait_error is not None:
            raise self.wait_error
        logs = self.logs
        if logs is None:
            uri = self.calls[-2][3][0]
            logs = [encode_registered_log(REGISTRY, self.agent_id, uri, OWNER, log_index=0)]
        return SubmissionReceipt(transaction_hash=tx_hash, status=1, block_number=1, logs=tuple(logs))

    def submitted(self):
        return [c for c in self.calls if c[0] == "submit"]


@pytest.fixture
def metadata_file(tmp_path):
    path = tmp_path / "registration.json"
    path.write_bytes(b'{\n  "name": "Agent A",\n  "description": "test agent"\n}\n')
    return path


def _run(client, path, **kwargs):
    return RegistrationWorkflow(client, BASE_SEPOLIA, path, **kwargs).run()


def test_success_persists_agent_id(metadata_file):
    raw = metadata_file.read_bytes()
    client = FakeChainClient(agent_id=42)
    outcome = _run(client, metadata_file, receipt_timeout=30)

    assert outcome.succeeded
    assert outcome.exit_code == 0
    assert outcome.phase is None
    assert outcome.history == [
        RegistrationState.UNREGISTERED,
        RegistrationState.SUBMITTED,
        RegistrationState.CONFIRMED,
        RegistrationState.RESOLVED,
        RegistrationState.PERSISTED,
    ]
    assert isinstance(outcome.decode_result, Resolved)
    assert outcome.tx_url == f"https://sepolia.basescan.org/tx/{TX_HASH}"

    saved = json.loads(metadata_file.read_text(encoding="utf-8"))
    assert saved["name"] == "Agent A"
    assert saved["registrations"] == [{"agentId": 42, "agentRegistry": LOCATOR}]
    assert outcome.record == saved

    _, target, signature, args = client.submitted()[0]
    assert target == REGISTRY
    assert signature == "register(string)"
    assert decode_data_uri(args[0]) == raw
    assert ("wait", TX_HASH, 30) in client.calls


def test_network_checked_before_submit(metadata_file):
    client = FakeChainClient()
    _run(client, metadata_file)
    assert client.calls[0] == ("verify",)


def test_network_check_can_be_skipped(metadata_file):
    client = FakeChainClient()
    _run(client, metadata_file, check_network=False)
    assert ("verify",) not in client.calls


def test_chain_mismatch_aborts_before_submit(metadata_file):
    original = metadata_file.read_bytes()
    client = FakeChainClient(verify_error=ChainIdMismatchError(84532, 1))
    outcome = _run(client, metadata_file)
    assert outcome.state is RegistrationState.ABORTED
    assert outcome.phase == Phase.PREFLIGHT
    assert outcome.exit_code == 2
    assert client.submitted() == []
    assert metadata_file.read_bytes() == original


def test_unresolved_persists_unknown(metadata_file):
    client = FakeChainClient(logs=[])
    outcome = _run(client, metadata_file)

    assert outcome.succeeded
    assert RegistrationState.UNRESOLVED in outcome.history
    assert isinstance(outcome.decode_result, Unresolved)
    saved = json.loads(metadata_file.read_text(encoding="utf-8"))
    assert saved["registrations"] == [{"agentId": "UNKNOWN", "agentRegistry": LOCATOR}]


def test_foreign_logs_only_unresolved(metadata_file):
    other = encode_registered_log("0x1111111111111111111111111111111111111111", 9, "x", OWNER)
    outcome = _run(FakeChainClient(logs=[other]), metadata_file)
    assert outcome.reference.agent_id == "UNKNOWN"


def test_timeout_leaves_file_untouched(metadata_file):
    original = metadata_file.read_bytes()
    client = FakeChainClient(wait_error=ConfirmationTimeout(TX_HASH, 1.0))
    outcome = _run(client, metadata_file, receipt_timeout=1.0)

    assert outcome.state is RegistrationState.ABORTED
    assert outcome.history[-2] is RegistrationState.SUBMITTED
    assert outcome.phase == Phase.CONFIRM
    assert outcome.tx_hash == TX_HASH
    assert outcome.exit_code == 14
    assert metadata_file.read_bytes() == original
    assert len(client.submitted()) == 1


@pytest.mark.parametrize(
    "error, exit_code",
    [
        (FundsError(OWNER, "insufficient funds"), 11),
        (NonceError("nonce too low", 3), 12),
        (NetworkError("connection refused"), 10),
        (TransactionRejected(reason="execution reverted"), 13),
    ],
)
def test_submit_errors_abort(metadata_file, error, exit_code):
    original = metadata_file.read_bytes()
    outcome = _run(FakeChainClient(submit_error=error), metadata_file)

    assert outcome.state is RegistrationState.ABORTED
    assert outcome.history == [RegistrationState.UNREGISTERED, RegistrationState.ABORTED]
    assert outcome.phase == Phase.SUBMIT
    assert outcome.error is error
    assert outcome.tx_hash is None
    assert outcome.exit_code == exit_code
    assert metadata_file.read_bytes() == original


def test_reverted_receipt_aborts(metadata_file):
    client = FakeChainClient(wait_error=TransactionRejected(tx_hash=TX_HASH, reason="reverted on-chain"))
    outcome = _run(client, metadata_file)
    assert outcome.phase == Phase.CONFIRM
    assert outcome.exit_code == 13


def test_missing_file_aborts_in_preflight(tmp_path):
    client = FakeChainClient()
    outcome = _run(client, tmp_path / "missing.json")
    assert outcome.phase == Phase.PREFLIGHT
    assert outcome.exit_code == 3
    assert client.calls == []


def test_already_registered_guard(metadata_file):
    metadata_file.write_text(
        json.dumps({"name": "A", "registrations": [{"agentId": 7, "agentRegistry": LOCATOR}]}),
        encoding="utf-8",
    )
    original = metadata_file.read_bytes()
    client = FakeChainClient()
    outcome = _run(client, metadata_file)

    assert outcome.state is RegistrationState.ABORTED
    assert outcome.exit_code == 4
    assert client.submitted() == []
    assert metadata_file.read_bytes() == original


def test_guard_ignores_other_registries(metadata_file):
    other = "eip155:8453:0x8004A169FB4a3325136EB29fA0ceB6D2e539a432"
    metadata_file.write_text(
        json.dumps({"name": "A", "registrations": [{"agentId": 7, "agentRegistry": other}]}),
        encoding="utf-8",
    )
    outcome = _run(FakeChainClient(agent_id=8), metadata_file)
    assert outcome.succeeded
    saved = json.loads(metadata_file.read_text(encoding="utf-8"))
    assert saved["registrations"] == [
        {"agentId": 7, "agentRegistry": other},
        {"agentId": 8, "agentRegistry": LOCATOR},
    ]


def test_force_replaces_existing_entry(metadata_file):
    metadata_file.write_text(
        json.dumps({"name": "A", "registrations": [{"agentId": "UNKNOWN", "agentRegistry": LOCATOR}]}),
        encoding="utf-8",
    )
    outcome = _run(FakeChainClient(agent_id=43), metadata_file, force=True)
    assert outcome.succeeded
    saved = json.loads(metadata_file.read_text(encoding="utf-8"))
    assert saved["registrations"] == [{"agentId": 43, "agentRegistry": LOCATOR}]


def test_output_path_keeps_source(metadata_file, tmp_path):
    original = metadata_file.read_bytes()
    output = tmp_path / "out.json"
    outcome = _run(FakeChainClient(), metadata_file, output_path=output)

    assert outcome.succeeded
    assert metadata_file.read_bytes() == original
    assert json.loads(output.read_text(encoding="utf-8"))["registrations"][0]["agentId"] == 42


def test_progress_callback(metadata_file):
    seen = []
    _run(FakeChainClient(), metadata_file, progress=lambda phase, message: seen.append(phase))
    assert seen == [Phase.PREFLIGHT, Phase.SUBMIT, Phase.CONFIRM]


def test_keyboard_interrupt_propagates(metadata_file):
    original = metadata_file.read_bytes()
    client = FakeChainClient(wait_error=KeyboardInterrupt())
    with pytest.raises(KeyboardInterrupt):
        _run(client, metadata_file)
    assert metadata_file.read_bytes() == original


@pytest.mark.parametrize("timeout", [0, -5, float("inf"), float("nan")])
def test_invalid_timeout_aborts_before_submit(metadata_file, timeout):
    original = metadata_file.read_bytes()
    client = FakeChainClient()
    outcome = _run(client, metadata_file, receipt_timeout=timeout)

    assert outcome.state is RegistrationState.ABORTED
    assert outcome.phase == Phase.PREFLIGHT
    assert isinstance(outcome.error, ConfigurationError)
    assert outcome.exit_code == 2
    assert client.calls == []
    assert metadata_file.read_bytes() == original


def test_unwritable_record_aborts_before_submit(metadata_file):
    """A lone surrogate loads as JSON but cannot be written back as UTF-8"""
    metadata_file.write_bytes(b'{"name": "A\\ud800"}')
    original = metadata_file.read_bytes()
    client = FakeChainClient()
    outcome = _run(client, metadata_file)

    assert outcome.state is RegistrationState.ABORTED
    assert outcome.phase == Phase.PREFLIGHT
    assert isinstance(outcome.error, InputError)
    assert outcome.exit_code == 3
    assert client.submitted() == []
    assert metadata_file.read_bytes() == original


def test_write_failure_aborts_after_confirmation(metadata_file, monkeypatch):
    original = metadata_file.read_bytes()

    def _fail(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", _fail)
    outcome = _run(FakeChainClient(), metadata_file)

    assert outcome.state is RegistrationState.ABORTED
    assert outcome.history[-2] is RegistrationState.RESOLVED
    assert outcome.phase == Phase.PERSIST
    assert isinstance(outcome.error, PersistenceError)
    assert outcome.exit_code == 20
    assert outcome.tx_hash == TX_HASH
    assert metadata_file.read_bytes() == original


def test_missing_output_directory_aborts_in_persist(metadata_file, tmp_path):
    original = metadata_file.read_bytes()
    outcome = _run(FakeChainClient(logs=[]), metadata_file, output_path=tmp_path / "nope" / "out.json")

    assert outcome.state is RegistrationState.ABORTED
    assert outcome.history[-2] is RegistrationState.UNRESOLVED
    assert outcome.phase == Phase.PERSIST
    assert outcome.exit_code == 20
    assert outcome.tx_hash == TX_HASH
    assert metadata_file.read_bytes() == original
