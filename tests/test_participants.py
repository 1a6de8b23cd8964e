"""
Participant key role tests.

Run with:
    pytest tests/test_participants.py -v
"""

import json

import pytest

from fspsim.crypto import PrivateKey, recover_message_signer
from fspsim.exceptions import ConfigurationError, RoleMisuseError
from fspsim.protocol.participants import (
    IdentityKey,
    RegisteredParticipant,
    SigningPolicyKey,
    SubmitKey,
    SubmitSignaturesKey,
    load_participants,
    registration_hash,
)


def _account(key: PrivateKey) -> dict:
    return {"address": key.address, "privateKey": key.to_hex()}


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def raw_keys():
    return [PrivateKey.generate() for _ in range(4)]


@pytest.fixture
def accounts_entry(raw_keys):
    identity, submit, submit_signatures, signing_policy = raw_keys
    return {
        "identity": _account(identity),
        "submit": _account(submit),
        "submitSignatures": _account(submit_signatures),
        "signingPolicy": _account(signing_policy),
    }


# ============================================================================
# Role separation
# ============================================================================


class TestRoles:

    def test_wrong_role_rejected(self, raw_keys):
        identity, submit, submit_signatures, signing_policy = raw_keys
        with pytest.raises(RoleMisuseError):
            RegisteredParticipant(
                identity=IdentityKey(identity),
                submit=SubmitSignaturesKey(submit),
                submit_signatures=SubmitSignaturesKey(submit_signatures),
                signing_policy=SigningPolicyKey(signing_policy),
            )

    def test_role_misuse_is_type_error(self):
        with pytest.raises(TypeError):
            SigningPolicyKey.require(SubmitKey(PrivateKey.generate()))

    def test_require_returns_key(self):
        key = SubmitKey(PrivateKey.generate())
        assert SubmitKey.require(key) is key

    def test_only_signing_policy_key_signs(self):
        assert not hasattr(SubmitKey(PrivateKey.generate()), "sign_hash")
        assert not hasattr(IdentityKey(PrivateKey.generate()), "sign_registration")

    def test_shared_key_rejected(self, raw_keys):
        shared = raw_keys[0]
        with pytest.raises(ConfigurationError):
            RegisteredParticipant(
                identity=IdentityKey(shared),
                submit=SubmitKey(shared),
                submit_signatures=SubmitSignaturesKey(raw_keys[2]),
                signing_policy=SigningPolicyKey(raw_keys[3]),
            )

    def test_registration_signature(self):
        participant = RegisteredParticipant.generate()
        signature = participant.signing_policy.sign_registration(5, participant.identity.address)
        signer = recover_message_signer(registration_hash(5, participant.identity.address), signature)
        assert signer == participant.voter_address

    def test_sign_hash_requires_32_bytes(self):
        key = SigningPolicyKey(PrivateKey.generate())
        with pytest.raises(ValueError):
            key.sign_hash(b'short')


# ============================================================================
# Accounts file
# ============================================================================


class TestAccountsFile:

    def test_from_dict(self, accounts_entry, raw_keys):
        participant = RegisteredParticipant.from_dict(accounts_entry)
        assert participant.identity.address == raw_keys[0].address
        assert participant.voter_address == raw_keys[3].address
        assert participant.owns_voter(raw_keys[3].address.lower())

    def test_address_mismatch(self, accounts_entry):
        accounts_entry["submit"]["address"] = PrivateKey.generate().address
        with pytest.raises(ConfigurationError):
            RegisteredParticipant.from_dict(accounts_entry)

    def test_missing_role(self, accounts_entry):
        del accounts_entry["signingPolicy"]
        with pytest.raises(ConfigurationError):
            RegisteredParticipant.from_dict(accounts_entry)

    def test_load_participants(self, accounts_entry, tmp_path):
        second = {
            role: _account(PrivateKey.generate())
            for role in ("identity", "submit", "submitSignatures", "signingPolicy")
        }
        path = tmp_path / "accounts.json"
        path.write_text(json.dumps([accounts_entry, second]))

        participants = load_participants(path)
        assert len(participants) == 2
        assert participants[1].identity.address == second["identity"]["address"]

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_participants(tmp_path / "nope.json")

    def test_load_rejects_object(self, tmp_path):
        path = tmp_path / "accounts.json"
        path.write_text("{}")
        with pytest.raises(ConfigurationError):
            load_participants(path)
