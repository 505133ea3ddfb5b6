from handle_index.bloom import Bloom


def test_membership_has_no_false_negatives():
    bloom = Bloom(500, 0.01)
    keys = [f"key-{i}".encode() for i in range(500)]
    for key in keys:
        bloom.add(key)
    assert all(key in bloom for key in keys)
    misses = sum(f"other-{i}".encode() in bloom for i in range(2000))
    assert misses < 100


def test_add_reports_changed_bytes_once():
    bloom = Bloom(10, 0.01)
    touched = bloom.add(b"k")
    assert touched
    assert all(bloom.bits[i] for i in touched)
    assert bloom.add(b"k") == []


def test_estimate_count():
    bloom = Bloom(10_000, 0.01)
    assert bloom.estimate_count() == 0
    for i in range(3000):
        bloom.add(i.to_bytes(8, "big"))
        bloom.add(i.to_bytes(8, "big"))
    assert 2850 <= bloom.estimate_count() <= 3150


def test_from_bytes_keeps_hash_count():
    bloom = Bloom(100, 0.01)
    bloom.add(b"abc")
    copy = Bloom.from_bytes(bloom.k, bytes(bloom.bits))
    assert copy.k == bloom.k and copy.m == bloom.m
    assert b"abc" in copy
