"""Unit tests for app.core.security: Argon2id hashing and password policy."""

import unittest

from app.core.errors import InvalidInputError
from app.core.security import HashingConfig, PasswordHasher, validate_password_strength
from tests.fakes import FAST_HASHING, STRONG_PASSWORD, fast_hasher


class TestHash(unittest.TestCase):
    """hash() produces salted Argon2id PHC strings."""

    def setUp(self) -> None:
        self.hasher = fast_hasher()

    def test_hash_is_argon2id_phc_string(self) -> None:
        hashed = self.hasher.hash(STRONG_PASSWORD)
        self.assertTrue(hashed.startswith("$argon2id$"))
        self.assertNotIn(STRONG_PASSWORD, hashed)

    def test_same_password_hashes_differently(self) -> None:
        self.assertNotEqual(self.hasher.hash(STRONG_PASSWORD), self.hasher.hash(STRONG_PASSWORD))

    def test_hash_encodes_configured_cost(self) -> None:
        hashed = self.hasher.hash(STRONG_PASSWORD)
        self.assertIn(f"m={FAST_HASHING.memory_cost},t={FAST_HASHING.time_cost},p={FAST_HASHING.parallelism}", hashed)

    def test_empty_password_rejected(self) -> None:
        with self.assertRaises(InvalidInputError) as ctx:
            self.hasher.hash("")
        self.assertEqual(ctx.exception.message, "Invalid password")

    def test_non_string_rejected(self) -> None:
        with self.assertRaises(InvalidInputError):
            self.hasher.hash(None)  # type: ignore[arg-type]


class TestVerify(unittest.TestCase):
    """verify() returns a bool and never raises."""

    def setUp(self) -> None:
        self.hasher = fast_hasher()
        self.hashed = self.hasher.hash(STRONG_PASSWORD)

    def test_correct_password(self) -> None:
        self.assertTrue(self.hasher.verify(STRONG_PASSWORD, self.hashed))

    def test_wrong_password(self) -> None:
        self.assertFalse(self.hasher.verify("Secure123!@$", self.hashed))

    def test_malformed_hash_is_false(self) -> None:
        self.assertFalse(self.hasher.verify(STRONG_PASSWORD, "not-a-hash"))

    def test_empty_hash_is_false(self) -> None:
        self.assertFalse(self.hasher.verify(STRONG_PASSWORD, ""))

    def test_non_string_inputs_are_false(self) -> None:
        self.assertFalse(self.hasher.verify(None, self.hashed))  # type: ignore[arg-type]
        self.assertFalse(self.hasher.verify(STRONG_PASSWORD, None))  # type: ignore[arg-type]

    def test_hash_from_other_cost_still_verifies(self) -> None:
        other = PasswordHasher(HashingConfig(memory_cost=2048, time_cost=2, parallelism=1, hash_len=16))
        self.assertTrue(self.hasher.verify(STRONG_PASSWORD, other.hash(STRONG_PASSWORD)))


class TestNeedsRehash(unittest.TestCase):
    def test_current_parameters(self) -> None:
        hasher = fast_hasher()
        self.assertFalse(hasher.needs_rehash(hasher.hash(STRONG_PASSWORD)))

    def test_older_parameters(self) -> None:
        weak = PasswordHasher(HashingConfig(memory_cost=1024, time_cost=1, parallelism=1, hash_len=16))
        strong = PasswordHasher(HashingConfig(memory_cost=2048, time_cost=2, parallelism=1, hash_len=16))
        self.assertTrue(strong.needs_rehash(weak.hash(STRONG_PASSWORD)))

    def test_unparseable_hash_needs_rehash(self) -> None:
        self.assertTrue(fast_hasher().needs_rehash("$2b$12$notanargon2hash"))


class TestPasswordStrength(unittest.TestCase):
    """validate_password_strength returns (ok, first failing rule)."""

    def test_strong_password(self) -> None:
        self.assertEqual(validate_password_strength(STRONG_PASSWORD), (True, ""))

    def test_rules_in_order(self) -> None:
        cases = {
            "Ab1!": "Password must be at least 8 characters long",
            "abcdefg1!": "Password must contain at least one uppercase letter",
            "ABCDEFG1!": "Password must contain at least one lowercase letter",
            "Abcdefgh!": "Password must contain at least one number",
            "Abcdefgh1": "Password must contain at least one special character",
        }
        for password, message in cases.items():
            with self.subTest(password=password):
                self.assertEqual(validate_password_strength(password), (False, message))

    def test_too_long(self) -> None:
        ok, message = validate_password_strength("Aa1!" * 33)
        self.assertFalse(ok)
        self.assertEqual(message, "Password must be at most 128 characters long")


if __name__ == "__main__":
    unittest.main()
