"""Test account label codec and credential generation."""

import pytest

from slot_engine.core.credentials import generate_numeric_credential
from slot_engine.core.labels import AccountLabelCodec


class TestAccountLabelCodec:
    """Test label <-> batch index conversion."""

    def test_bootstrap_label(self, codec):
        """Index 0 is the well-known first account."""
        assert codec.label_for_index(0) == "1a8@pool.test"

    def test_following_labels(self, codec):
        """Each index covers the next 8 global slot numbers."""
        assert codec.label_for_index(1) == "9a16@pool.test"
        assert codec.label_for_index(2) == "17a24@pool.test"
        assert codec.label_for_index(124) == "993a1000@pool.test"

    def test_negative_index_rejected(self, codec):
        with pytest.raises(ValueError):
            codec.label_for_index(-1)

    @pytest.mark.parametrize("index", [0, 1, 7, 42, 624])
    def test_index_for_label_inverts_label_for_index(self, codec, index):
        assert codec.index_for_label(codec.label_for_index(index)) == index

    def test_domain_case_is_ignored(self, codec):
        assert codec.index_for_label("9a16@POOL.TEST") == 1

    @pytest.mark.parametrize("label", [
        "",
        "vip-account@pool.test",
        "1a8",
        "1a8@other.test",
        "1a8@pool.test@pool.test",
        "2a9@pool.test",      # misaligned start
        "1a9@pool.test",      # wrong range width
        "09a16@pool.test",    # zero padded
        "0a7@pool.test",      # slot numbers start at 1
        "1b8@pool.test",
    ])
    def test_non_pool_labels_rejected(self, codec, label):
        """Operator-created and malformed labels never map to an index."""
        assert codec.index_for_label(label) is None

    def test_custom_capacity(self):
        codec = AccountLabelCodec(domain="pool.test", slots_per_account=4)

        assert codec.label_for_index(2) == "9a12@pool.test"
        assert codec.index_for_label("9a12@pool.test") == 2
        assert codec.index_for_label("9a16@pool.test") is None

    def test_display_name_is_global_slot_number(self, codec):
        assert codec.display_name(0, 1) == "1"
        assert codec.display_name(1, 8) == "16"

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            AccountLabelCodec(domain="pool.test", slots_per_account=0)


class TestNumericCredential:
    """Test credential generation."""

    def test_default_length(self):
        credential = generate_numeric_credential()

        assert len(credential) == 4
        assert credential.isdigit()

    def test_custom_length(self):
        assert len(generate_numeric_credential(10)) == 10

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            generate_numeric_credential(0)
