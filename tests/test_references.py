import threading

import pytest

from errors import ReferenceCollision, ReferenceExhausted
from pricing import PriceResolver
from references import ReferenceGenerator, reference_pattern
from store import BookingStore

from conftest import package_booking


def test_generated_reference_matches_documented_format():
    reference = ReferenceGenerator().generate()
    assert reference_pattern().match(reference)
    assert reference.startswith("DV-")
    assert len(reference) == 16


def test_references_sort_by_creation_time():
    ticks = iter([1_700_000_000.0, 1_700_000_001.0, 1_800_000_000.0])
    gen = ReferenceGenerator(clock=lambda: next(ticks), randbelow=lambda n: n - 1)
    first, second, third = gen.generate(), gen.generate(), gen.generate()
    assert first < second < third


def test_custom_prefix():
    gen = ReferenceGenerator(prefix="TRV")
    assert reference_pattern("TRV").match(gen.generate())


def test_allocate_retries_with_a_new_candidate_after_collision():
    suffixes = iter([7, 7, 8])
    gen = ReferenceGenerator(clock=lambda: 1_700_000_000.0, randbelow=lambda n: next(suffixes))
    taken = set()

    def insert(candidate):
        if candidate in taken:
            raise ReferenceCollision(candidate)
        taken.add(candidate)
        return candidate

    first = gen.allocate(insert)
    second = gen.allocate(insert)
    assert first != second
    assert taken == {first, second}


def test_allocate_gives_up_after_max_attempts():
    gen = ReferenceGenerator(max_attempts=5)
    attempts = []

    def insert(candidate):
        attempts.append(candidate)
        raise ReferenceCollision(candidate)

    with pytest.raises(ReferenceExhausted):
        gen.allocate(insert)
    assert len(attempts) == 5


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        ReferenceGenerator(max_attempts=0)


def test_concurrent_creation_never_persists_a_duplicate_reference(repository, alice, settings):
    # frozen clock and random source: every thread races on the same single candidate
    gen = ReferenceGenerator(clock=lambda: 1_700_000_000.0, randbelow=lambda n: 0, max_attempts=3)
    store = BookingStore(repository, gen, PriceResolver(repository), settings.currency)
    outcomes = []

    def create():
        try:
            outcomes.append(store.create(alice, package_booking()))
        except ReferenceExhausted as exc:
            outcomes.append(exc)

    threads = [threading.Thread(target=create) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    created = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(created) == 1
    references = [b.reference for b in repository.bookings.values()]
    assert len(references) == len(set(references)) == 1
