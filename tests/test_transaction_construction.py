"""
Test suite for ledger transaction construction.

Tests header building, header signing and single-transaction batching.
"""

import hashlib

import pytest

from ballot_batcher.ballot.identifier import Identifier, TransactionType
from ballot_batcher.ledger import messages
from ballot_batcher.tx.builder import (
    NONCE_BYTES,
    TransactionBuildError,
    build_batch,
    build_batch_header,
    build_batch_list,
    build_header,
    build_transaction,
)
from ballot_batcher.tx.signer import LedgerSigner, SigningError, SigningProvider, generate_signer


class BrokenSigner(SigningProvider):
    """Signer whose key store is unavailable."""

    def get_public_key(self) -> bytes:
        raise OSError("key store unavailable")

    def sign(self, data: bytes) -> bytes:
        raise OSError("key store unavailable")


def parse_header(header_bytes: bytes):
    return messages.parse(messages.TransactionHeader, header_bytes)


# ============================================================================
# Test Ledger Signer
# ============================================================================

class TestLedgerSigner:
    """Tests for secp256k1 header signing."""

    def test_generate_signer(self, test_config):
        signer = generate_signer(test_config)

        assert signer.is_loaded is True
        public_key = signer.get_public_key()
        assert len(public_key) == 33
        assert public_key[0] in (2, 3)

    def test_signer_not_loaded(self, test_config):
        signer = LedgerSigner(config=test_config)

        assert signer.is_loaded is False
        with pytest.raises(SigningError, match="No signer key loaded"):
            signer.sign(b"header")

    def test_sign_and_verify(self, test_signer):
        signature = test_signer.sign(b"header bytes")

        assert len(signature) == 64
        assert test_signer.verify(b"header bytes", signature)
        assert not test_signer.verify(b"other bytes", signature)

    def test_signatures_are_low_s(self, test_signer):
        half_order = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141 // 2
        for i in range(20):
            signature = test_signer.sign(f"message {i}".encode())
            assert int.from_bytes(signature[32:], "big") <= half_order

    def test_load_key_from_hex(self, test_signer, test_config):
        loaded = LedgerSigner(config=test_config)
        loaded.load_key_from_hex(test_signer.private_key_hex())

        assert loaded.get_public_key() == test_signer.get_public_key()

    def test_load_key_from_file(self, test_signer, test_config, tmp_path):
        path = tmp_path / "signer.key"
        path.write_text(test_signer.private_key_hex())

        test_config.signer_key_path = str(path)
        loaded = LedgerSigner(config=test_config)
        loaded.load_from_config()

        assert loaded.public_key_hex() == test_signer.public_key_hex()

    def test_load_from_config_expands_path(self, test_signer, test_config, tmp_path, monkeypatch):
        (tmp_path / "signer.key").write_text(test_signer.private_key_hex())
        monkeypatch.setenv("BALLOT_KEY_DIR", str(tmp_path))

        test_config.signer_key_path = "$BALLOT_KEY_DIR/signer.key"
        loaded = LedgerSigner(config=test_config)
        loaded.load_from_config()

        assert loaded.public_key_hex() == test_signer.public_key_hex()

    def test_load_invalid_key(self, test_config):
        signer = LedgerSigner(config=test_config)
        with pytest.raises(SigningError):
            signer.load_key_from_hex("not a key")

    def test_load_without_configured_key(self, test_config):
        with pytest.raises(SigningError, match="No signer key configured"):
            LedgerSigner(config=test_config).load_from_config()

    def test_provider_failures_become_signing_errors(self):
        with pytest.raises(SigningError, match="public key"):
            BrokenSigner().public_key_hex()
        with pytest.raises(SigningError, match="Unable to sign"):
            BrokenSigner().sign_hex(b"data")


# ============================================================================
# Test Header Builder
# ============================================================================

class TestBuildHeader:
    """Tests for transaction header construction."""

    def test_header_fields(self, test_signer, addressing, election_id, test_config):
        vote_id = Identifier.new(election_id, TransactionType.VOTE)
        payload = b"payload bytes"

        header = parse_header(
            build_header(test_signer, payload, [election_id], [vote_id], addressing, test_config)
        )

        assert header.family_name == "cryptoballot"
        assert header.family_version == "1.0"
        assert list(header.inputs) == [addressing.address_of(election_id)]
        assert list(header.outputs) == [addressing.address_of(vote_id)]
        assert header.signer_public_key == test_signer.public_key_hex()
        assert header.batcher_public_key == header.signer_public_key
        assert header.payload_sha512 == hashlib.sha512(payload).hexdigest()
        assert list(header.dependencies) == []

    def test_nonce_is_128_bit_hex(self, test_signer, addressing, election_id, test_config):
        header = parse_header(build_header(test_signer, b"x", [], [election_id], addressing, test_config))

        assert len(header.nonce) == NONCE_BYTES * 2
        int(header.nonce, 16)

    def test_nonce_is_fresh(self, test_signer, addressing, election_id, test_config):
        nonces = {
            parse_header(build_header(test_signer, b"x", [], [election_id], addressing, test_config)).nonce
            for _ in range(10)
        }
        assert len(nonces) == 10

    def test_input_order_preserved(self, test_signer, addressing, election_id, test_config):
        inputs = [Identifier.new(election_id, TransactionType.VOTE) for _ in range(5)]
        header = parse_header(build_header(test_signer, b"x", inputs, [], addressing, test_config))

        assert list(header.inputs) == [addressing.address_of(i) for i in inputs]

    def test_broken_signer_aborts(self, addressing, election_id, test_config):
        with pytest.raises(SigningError):
            build_header(BrokenSigner(), b"x", [], [election_id], addressing, test_config)


# ============================================================================
# Test Ledger Transaction
# ============================================================================

class TestBuildTransaction:
    """Tests for signed ledger transactions."""

    def test_transaction_structure(self, test_signer, signed_vote, addressing, election_id, test_config):
        tx = build_transaction(test_signer, signed_vote, addressing, test_config)
        header = parse_header(tx.header)

        assert tx.payload == signed_vote.to_bytes()
        assert header.payload_sha512 == hashlib.sha512(tx.payload).hexdigest()
        assert list(header.inputs) == [addressing.address_of(election_id)]
        assert list(header.outputs) == [addressing.address_of(signed_vote.id)]

    def test_signature_covers_header(self, test_signer, signed_vote, addressing, test_config):
        tx = build_transaction(test_signer, signed_vote, addressing, test_config)

        assert test_signer.verify(tx.header, bytes.fromhex(tx.header_signature))
        assert not test_signer.verify(tx.payload, bytes.fromhex(tx.header_signature))

    def test_changing_any_field_changes_signature(self, test_signer, addressing, election_id, test_config):
        vote_id = Identifier.new(election_id, TransactionType.VOTE)
        other_id = Identifier.new(election_id, TransactionType.VOTE)

        base = build_header(test_signer, b"payload", [election_id], [vote_id], addressing, test_config)
        header = parse_header(base)

        def resigned(**changes):
            mutated = messages.TransactionHeader()
            mutated.CopyFrom(header)
            for name, value in changes.items():
                if isinstance(value, list):
                    mutated.ClearField(name)
                    getattr(mutated, name).extend(value)
                else:
                    setattr(mutated, name, value)
            return messages.serialize(mutated)

        variants = [
            resigned(inputs=[addressing.address_of(other_id)]),
            resigned(outputs=[addressing.address_of(other_id)]),
            resigned(payload_sha512=hashlib.sha512(b"other payload").hexdigest()),
            resigned(nonce="00" * NONCE_BYTES),
        ]

        base_signature = test_signer.sign(base)
        for variant in variants:
            assert variant != base
            assert not test_signer.verify(variant, base_signature)

    def test_rebuilt_header_differs_by_nonce(self, test_signer, signed_vote, addressing, test_config):
        first = build_transaction(test_signer, signed_vote, addressing, test_config)
        second = build_transaction(test_signer, signed_vote, addressing, test_config)

        assert first.header != second.header
        assert first.header_signature != second.header_signature
        assert first.payload == second.payload


# ============================================================================
# Test Batch Builder
# ============================================================================

class TestBuildBatch:
    """Tests for single-transaction batches."""

    def test_batch_header(self, test_signer, signed_vote, addressing, test_config):
        tx = build_transaction(test_signer, signed_vote, addressing, test_config)
        header = messages.parse(messages.BatchHeader, build_batch_header(test_signer, tx))

        assert header.signer_public_key == test_signer.public_key_hex()
        assert list(header.transaction_ids) == [tx.header_signature]

    def test_batch_is_singleton(self, test_signer, signed_election, signed_vote, addressing, test_config):
        for signed_tx in (signed_election, signed_vote):
            tx = build_transaction(test_signer, signed_tx, addressing, test_config)
            batch = build_batch(test_signer, tx)
            header = messages.parse(messages.BatchHeader, batch.header)

            assert len(batch.transactions) == 1
            assert len(header.transaction_ids) == 1
            assert batch.transactions[0] == tx

    def test_batch_signed_by_same_identity(self, test_signer, signed_vote, addressing, test_config):
        tx = build_transaction(test_signer, signed_vote, addressing, test_config)
        batch = build_batch(test_signer, tx)

        assert test_signer.verify(batch.header, bytes.fromhex(batch.header_signature))
        tx_header = parse_header(tx.header)
        batch_header = messages.parse(messages.BatchHeader, batch.header)
        assert batch_header.signer_public_key == tx_header.signer_public_key

    def test_batch_list(self, test_signer, signed_vote, addressing, test_config):
        tx = build_transaction(test_signer, signed_vote, addressing, test_config)
        batch_list = messages.parse(messages.BatchList, build_batch_list(test_signer, tx))

        assert len(batch_list.batches) == 1
        assert batch_list.batches[0].transactions[0].header_signature == tx.header_signature

    def test_schema_messages(self):
        assert set(messages.__all__) == {
            "TransactionHeader",
            "Transaction",
            "BatchHeader",
            "Batch",
            "BatchList",
            "DecodeError",
            "serialize",
            "parse",
        }
        assert not hasattr(messages, "TransactionList")

    def test_unsigned_transaction_rejected(self, test_signer):
        with pytest.raises(TransactionBuildError, match="header signature"):
            build_batch_header(test_signer, messages.Transaction(header=b"x", payload=b"y"))
