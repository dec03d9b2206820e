import pytest

from tradejournal.exceptions import CredentialError
from tradejournal.utils.crypto_utils import decrypt, encrypt

KEY = "ab" * 32


class TestCredentialEncryption:
    def test_round_trip(self):
        assert decrypt(encrypt("hunter2", KEY), KEY) == "hunter2"

    def test_format_and_random_iv(self):
        first, second = encrypt("same", KEY), encrypt("same", KEY)
        assert first != second
        iv, tag, ciphertext = first.split(":")
        assert len(bytes.fromhex(iv)) == 12
        assert len(bytes.fromhex(tag)) == 16
        assert len(bytes.fromhex(ciphertext)) == len("same")

    def test_wrong_key(self):
        with pytest.raises(CredentialError):
            decrypt(encrypt("secret", KEY), "cd" * 32)

    def test_tampered(self):
        iv, tag, ciphertext = encrypt("secret", KEY).split(":")
        with pytest.raises(CredentialError):
            decrypt(f"{iv}:{'00' * 16}:{ciphertext}", KEY)

    @pytest.mark.parametrize("value", ["nocolons", "a:b", "zz:zz:zz"])
    def test_malformed(self, value):
        with pytest.raises(CredentialError, match="Invalid encrypted string format"):
            decrypt(value, KEY)

    @pytest.mark.parametrize("key", ["", "abc", "zz" * 32])
    def test_bad_key(self, key):
        with pytest.raises(CredentialError):
            encrypt("x", key)
