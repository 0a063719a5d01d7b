"""Unit tests for shared.crypto and shared.generators."""

import re
import threading

import pytest
from argon2 import PasswordHasher

from shared.crypto import (
    Argon2SecretHasher,
    TokenDigestHasher,
    hash_off_loop,
    verify_off_loop,
)
from shared.generators import generate_grant_id, generate_otp_code, generate_secure_token


@pytest.fixture
def argon():
    return Argon2SecretHasher(PasswordHasher(time_cost=1, memory_cost=8, parallelism=1))


class _ThreadRecordingHasher:
    def __init__(self, inner):
        self.inner = inner
        self.threads = []

    def hash(self, secret):
        self.threads.append(threading.get_ident())
        return self.inner.hash(secret)

    def verify(self, secret, digest):
        self.threads.append(threading.get_ident())
        return self.inner.verify(secret, digest)

class TestArgon2SecretHasher:
    def test_hash_is_salted(self, argon):
        assert argon.hash("123456") != argon.hash("123456")

    def test_verify_roundtrip(self, argon):
        digest = argon.hash("Str0ng!Pass")
        assert argon.verify("Str0ng!Pass", digest)
        assert not argon.verify("wrong", digest)

    def test_digest_does_not_contain_secret(self, argon):
        assert "482913" not in argon.hash("482913")

    @pytest.mark.parametrize("digest", [None, "", "not-a-hash", "$argon2id$garbage"])
    def test_missing_or_malformed_digest_is_false(self, argon, digest):
        assert argon.verify("anything", digest) is False

    def test_needs_rehash_when_parameters_change(self, argon):
        digest = argon.hash("secret")
        assert argon.needs_rehash(digest) is False
        assert Argon2SecretHasher().needs_rehash(digest) is True

    def test_needs_rehash_on_malformed(self, argon):
        assert argon.needs_rehash("not-a-hash") is True


class TestTokenDigestHasher:
    def test_deterministic_sha256_hex(self):
        h = TokenDigestHasher()
        assert h.hash("abc") == h.hash("abc")
        assert re.fullmatch(r"[0-9a-f]{64}", h.hash("abc"))

    def test_verify(self):
        h = TokenDigestHasher()
        digest = h.hash("token")
        assert h.verify("token", digest)
        assert not h.verify("token2", digest)

    def test_verify_missing_digest(self):
        assert TokenDigestHasher().verify("token", None) is False

    def test_verify_non_ascii_digest_is_false(self):
        assert TokenDigestHasher().verify("token", "é" * 64) is False

    def test_never_needs_rehash(self):
        assert TokenDigestHasher().needs_rehash("x") is False


class TestGenerators:
    def test_otp_code_is_six_digits(self):
        for _ in range(200):
            code = generate_otp_code()
            assert len(code) == 6 and code.isdigit()

    def test_otp_code_keeps_leading_zeros(self, mocker):
        mocker.patch("shared.generators.secrets.randbelow", return_value=4721)
        assert generate_otp_code() == "004721"

    def test_otp_code_custom_length(self):
        assert len(generate_otp_code(8)) == 8

    def test_secure_token_entropy(self):
        token = generate_secure_token()
        assert re.fullmatch(r"[0-9a-f]{64}", token)
        assert token != generate_secure_token()

    def test_grant_id_is_urlsafe(self):
        assert re.fullmatch(r"[A-Za-z0-9_-]+", generate_grant_id())


class TestOffLoopHelpers:
    async def test_hash_and_verify_run_in_a_worker_thread(self, argon):
        hasher = _ThreadRecordingHasher(argon)

        digest = await hash_off_loop(hasher, "Str0ng!Pass")
        assert await verify_off_loop(hasher, "Str0ng!Pass", digest)
        assert not await verify_off_loop(hasher, "wrong", digest)

        assert len(hasher.threads) == 3
        assert threading.get_ident() not in hasher.threads

    async def test_verify_keeps_false_for_missing_digest(self, argon):
        assert await verify_off_loop(argon, "x", None) is False
