"""Short id generator tests."""

import pytest

from shortlink.config import Settings
from shortlink.id_generator import ShortIdGenerator

DEFAULT_ALPHABET = "1234567890abcdefghijklmnopqrstuvwxyz"


def test_default_ids_use_alphabet_and_length() -> None:
    generator = ShortIdGenerator(DEFAULT_ALPHABET, 7)
    for _ in range(200):
        short_id = generator()
        assert len(short_id) == 7
        assert set(short_id) <= set(DEFAULT_ALPHABET)


def test_seeded_generators_repeat_the_same_sequence() -> None:
    first = ShortIdGenerator(DEFAULT_ALPHABET, 7, seed=42)
    second = ShortIdGenerator(DEFAULT_ALPHABET, 7, seed=42)
    assert [first() for _ in range(20)] == [second() for _ in range(20)]


def test_seeded_ids_stay_within_alphabet() -> None:
    generator = ShortIdGenerator("ab", 12, seed=7)
    short_id = generator()
    assert len(short_id) == 12
    assert set(short_id) <= {"a", "b"}


def test_different_seeds_diverge() -> None:
    first = ShortIdGenerator(DEFAULT_ALPHABET, 7, seed=1)
    second = ShortIdGenerator(DEFAULT_ALPHABET, 7, seed=2)
    assert [first() for _ in range(5)] != [second() for _ in range(5)]


def test_ids_are_distinct_in_practice() -> None:
    generator = ShortIdGenerator(DEFAULT_ALPHABET, 7, seed=99)
    ids = {generator() for _ in range(1000)}
    assert len(ids) == 1000


def test_from_settings() -> None:
    settings = Settings(SHORT_ID_ALPHABET="xyz", SHORT_ID_LENGTH=4, SHORT_ID_SEED=5)
    generator = ShortIdGenerator.from_settings(settings)
    assert generator.alphabet == "xyz"
    assert generator.length == 4
    assert generator() == ShortIdGenerator("xyz", 4, seed=5)()


@pytest.mark.parametrize("alphabet", ["", "a", "aab"])
def test_rejects_bad_alphabet(alphabet: str) -> None:
    with pytest.raises(ValueError):
        ShortIdGenerator(alphabet, 7)


def test_rejects_non_positive_length() -> None:
    with pytest.raises(ValueError):
        ShortIdGenerator(DEFAULT_ALPHABET, 0)
