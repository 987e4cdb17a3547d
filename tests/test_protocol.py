"""
Tests for protocol encodings and records.
"""

import pytest

from pkdverify.protocol.encoding import (
    PublicKey,
    b64url_decode,
    b64url_encode,
    decode_merkle_root,
    encode_merkle_root,
)
from pkdverify.protocol.enums import EntryKind, ErrorCode, KeyState
from pkdverify.protocol.errors import EncodingError, ForkDetected, PKDError, ProofMalformed
from pkdverify.protocol.models import (
    ConsistencyProof,
    ForkEvidence,
    IdentityKeyStatus,
    InclusionProof,
    LogEntry,
    SignedTreeHead,
    TrustedState,
)

KEY_BYTES = bytes([
    0x4e, 0x6d, 0x97, 0x06, 0xf6, 0xf4, 0x98, 0x06, 0xf8, 0x95, 0xd5, 0x6e, 0x6c, 0x2c, 0xef,
    0xcf, 0x41, 0xcc, 0x4d, 0xcc, 0xd1, 0xf1, 0x51, 0x85, 0xe3, 0x8b, 0x2f, 0xe3, 0xbf, 0x15,
    0x14, 0xb3,
])
KEY_ENCODED = "ed25519:Tm2XBvb0mAb4ldVubCzvz0HMTczR8VGF44sv478VFLM"

ROOT_BYTES = bytes([
    237, 60, 10, 1, 185, 34, 40, 32, 144, 184, 42, 67, 5, 93, 134, 110, 73, 36, 32, 55, 204,
    131, 96, 38, 27, 180, 204, 30, 165, 193, 12, 149,
])
ROOT_ENCODED = "pkd-mr-v1:7TwKAbkiKCCQuCpDBV2GbkkkIDfMg2AmG7TMHqXBDJU"


class TestPublicKeyEncoding:
    def test_encode(self):
        assert PublicKey.ed25519(KEY_BYTES).encode() == KEY_ENCODED

    def test_decode(self):
        assert PublicKey.decode(KEY_ENCODED) == PublicKey.ed25519(KEY_BYTES)

    @pytest.mark.parametrize("value", ["", "invalid:key", "ed25519:key", "ed25519" + ":" + "A" * 44])
    def test_decode_rejects(self, value):
        """Empty values, unknown tags and wrong lengths are rejected."""
        with pytest.raises(EncodingError):
            PublicKey.decode(value)

    def test_rejects_wrong_raw_length(self):
        with pytest.raises(EncodingError):
            PublicKey.ed25519(b"\x00" * 31)

    def test_encoding_error_is_value_error(self):
        with pytest.raises(ValueError):
            PublicKey.decode("nope")


class TestMerkleRootEncoding:
    def test_encode(self):
        assert encode_merkle_root(ROOT_BYTES) == ROOT_ENCODED

    def test_decode(self):
        assert decode_merkle_root(ROOT_ENCODED) == ROOT_BYTES

    @pytest.mark.parametrize("value", ["", "invalid:key", "ed25519:key", KEY_ENCODED])
    def test_decode_rejects(self, value):
        with pytest.raises(EncodingError):
            decode_merkle_root(value)


class TestBase64Url:
    def test_unpadded(self):
        assert b64url_encode(b"\x01\x02\x03\x04") == "AQIDBA"
        assert b64url_decode("AQIDBA") == b"\x01\x02\x03\x04"

    def test_rejects_padding_and_bad_chars(self):
        with pytest.raises(EncodingError):
            b64url_decode("AQIDBA==")
        with pytest.raises(EncodingError):
            b64url_decode("AQ+/")


class TestLogEntry:
    def test_enrollment_requires_key(self):
        with pytest.raises(ValueError):
            LogEntry(EntryKind.ENROLLMENT, "alice", 0, 1)

    def test_pruning_rejects_key(self):
        with pytest.raises(ValueError):
            LogEntry(EntryKind.PRUNING, "alice", 0, 1, PublicKey.ed25519(KEY_BYTES))

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            LogEntry(EntryKind.REVOCATION, "alice", -1, 1)

    def test_kind_string_is_coerced(self):
        entry = LogEntry("revocation", "alice", 3, 1)
        assert entry.kind is EntryKind.REVOCATION

    def test_dict_form(self):
        """Keys are carried in their prefixed encoding."""
        entry = LogEntry(EntryKind.ENROLLMENT, "alice", 3, 1700000000, PublicKey.ed25519(KEY_BYTES))
        data = entry.to_dict()
        assert data["keyMaterial"] == KEY_ENCODED
        assert LogEntry.from_dict(data) == entry

    def test_leaf_bytes_are_canonical(self):
        entry = LogEntry(EntryKind.PRUNING, "alice", 9, 1700000000)
        assert entry.leaf_bytes() == (
            b'{"identity":"alice","kind":"pruning","logIndex":9,"timestamp":1700000000}'
        )

    @pytest.mark.parametrize("kind", ["burn-down", "fireproof", "move-identity", "add-aux-data"])
    def test_kind_is_closed(self, kind):
        """Only enrollment, revocation and pruning entries are understood."""
        with pytest.raises(EncodingError):
            LogEntry.from_dict({"kind": kind, "identity": "bob", "logIndex": 1, "timestamp": 1})

    def test_from_dict_accepts_string_timestamp(self):
        entry = LogEntry.from_dict(
            {"kind": "revocation", "identity": "bob", "logIndex": 1, "timestamp": "1700000000"}
        )
        assert entry.timestamp == 1700000000

    @pytest.mark.parametrize("data", [
        {"kind": "enrollment", "identity": "bob", "logIndex": 1, "timestamp": 1},
        {"kind": "unknown", "identity": "bob", "logIndex": 1, "timestamp": 1},
        {"kind": "pruning", "identity": "bob", "logIndex": -1, "timestamp": 1},
        {"kind": "pruning", "identity": "bob", "timestamp": 1},
        {"kind": "pruning", "identity": "bob", "logIndex": 1, "timestamp": "soon"},
    ])
    def test_from_dict_rejects(self, data):
        with pytest.raises(EncodingError):
            LogEntry.from_dict(data)


class TestSignedTreeHead:
    def test_signing_payload_covers_size_root_and_time(self):
        sth = SignedTreeHead(tree_size=4, root_hash=ROOT_BYTES, timestamp=10, signature=b"s")
        assert sth.signing_payload() == (
            b'{"rootHash":"' + ROOT_ENCODED.encode() + b'","timestamp":10,"treeSize":4}'
        )

    def test_signature_not_in_payload(self):
        a = SignedTreeHead(4, ROOT_BYTES, 10, b"one")
        b = SignedTreeHead(4, ROOT_BYTES, 10, b"two")
        assert a.signing_payload() == b.signing_payload()

    def test_dict_round_trip(self):
        sth = SignedTreeHead(4, ROOT_BYTES, 10, b"\x01" * 64, key_id="abc")
        assert SignedTreeHead.from_dict(sth.to_dict()) == sth

    def test_from_dict_rejects_bad_root(self):
        with pytest.raises(EncodingError):
            SignedTreeHead.from_dict({"treeSize": 1, "rootHash": "x:y", "timestamp": 1})


class TestProofRecords:
    def test_inclusion_dict_round_trip(self):
        proof = InclusionProof(3, [b"\x01" * 32, b"\x02" * 32], tree_size=5)
        assert InclusionProof.from_dict(proof.to_dict()) == proof

    def test_consistency_dict_round_trip(self):
        proof = ConsistencyProof(3, 5, [b"\x03" * 32])
        assert ConsistencyProof.from_dict(proof.to_dict()) == proof

    def test_path_is_immutable(self):
        proof = InclusionProof(0, [b"\x01" * 32])
        assert isinstance(proof.audit_path, tuple)


class TestStatusAndState:
    def test_unknown_status(self):
        status = IdentityKeyStatus.unknown("carol")
        assert status.state is KeyState.UNKNOWN
        assert status.active_key is None
        assert not status.is_active

    def test_active_requires_key(self):
        with pytest.raises(ValueError):
            IdentityKeyStatus("carol", KeyState.ACTIVE)

    def test_forgotten_cannot_hold_key(self):
        with pytest.raises(ValueError):
            IdentityKeyStatus("carol", KeyState.FORGOTTEN, PublicKey.ed25519(KEY_BYTES), 9)

    def test_identity_map_is_read_only(self):
        state = TrustedState(SignedTreeHead(1, ROOT_BYTES, 1, b"s"), {})
        with pytest.raises(TypeError):
            state.identity_map["x"] = IdentityKeyStatus.unknown("x")

    def test_with_updates_leaves_original_untouched(self):
        sth1 = SignedTreeHead(1, ROOT_BYTES, 1, b"s")
        sth2 = SignedTreeHead(2, ROOT_BYTES, 2, b"s")
        before = TrustedState(sth1, {"a": IdentityKeyStatus("a", KeyState.REVOKED, None, 0)})
        after = before.with_updates(sth2, {"b": IdentityKeyStatus("b", KeyState.REVOKED, None, 1)})
        assert set(before.identity_map) == {"a"}
        assert set(after.identity_map) == {"a", "b"}
        assert after.tree_size == 2

    def test_status_for_unknown_identity(self):
        state = TrustedState(SignedTreeHead(1, ROOT_BYTES, 1, b"s"))
        assert state.status_for("nobody").state is KeyState.UNKNOWN

    @pytest.mark.parametrize("as_of_index", ["7", -1, True, 1.5])
    def test_status_rejects_bad_as_of_index(self, as_of_index):
        with pytest.raises(EncodingError):
            IdentityKeyStatus.from_dict(
                {"identity": "carol", "state": "revoked", "asOfIndex": as_of_index}
            )

    def test_status_without_as_of_index(self):
        status = IdentityKeyStatus.from_dict({"identity": "carol", "state": "unknown"})
        assert status.as_of_index is None

    def test_rejects_unknown_state_version(self):
        data = TrustedState(SignedTreeHead(1, ROOT_BYTES, 1, b"s")).to_dict()
        data["version"] = 99
        with pytest.raises(EncodingError):
            TrustedState.from_dict(data)


class TestErrors:
    def test_codes(self):
        assert ProofMalformed("x").code is ErrorCode.PROOF_MALFORMED
        assert PKDError("x").code is ErrorCode.INTERNAL_ERROR

    def test_fork_carries_evidence(self):
        sth = SignedTreeHead(1, ROOT_BYTES, 1, b"s")
        evidence = ForkEvidence(sth, sth, None, detected_at=5)
        error = ForkDetected("fork", evidence)
        assert error.code is ErrorCode.FORK_DETECTED
        assert ForkEvidence.from_dict(error.evidence.to_dict()) == evidence
