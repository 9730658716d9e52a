import itertools

import pytest

from gpu_nfdhook import labels as L


@pytest.mark.parametrize(
    "value, max_length, expected",
    [
        ("foo_bar", 4, ["foo_", "bar"]),
        ("foo_bar", 7, ["foo_bar"]),
        ("foo_bar", 100, ["foo_bar"]),
        ("abcdef", 3, ["abc", "def"]),
        ("abcdefg", 3, ["abc", "def", "g"]),
        ("", 63, [""]),
    ],
)
def test_split(value, max_length, expected):
    assert L.split(value, max_length) == expected


@pytest.mark.parametrize("value", ["", "x", "0.1.2.3", "card0.card1." * 20, "a" * 63, "b" * 64, "c" * 127])
@pytest.mark.parametrize("max_length", [1, 2, 5, 63])
def test_split_is_lossless_partition(value, max_length):
    chunks = L.split(value, max_length)
    assert "".join(chunks) == value
    assert all(len(chunk) <= max_length for chunk in chunks)
    assert all(len(chunk) == max_length for chunk in chunks[:-1])


def test_split_rejects_non_positive_length():
    with pytest.raises(ValueError):
        L.split("abc", 0)


def test_set_split_label_uses_numbered_continuation_keys():
    labels = {}
    L.set_split_label(labels, "ns/key", "x" * 130)
    assert list(labels) == ["ns/key", "ns/key2", "ns/key3"]
    assert [len(v) for v in labels.values()] == [63, 63, 4]


def test_set_split_label_short_value_single_key():
    labels = {}
    L.set_split_label(labels, "ns/key", "0.1")
    assert labels == {"ns/key": "0.1"}


def test_add_numeric_label_creates_and_accumulates():
    labels = {}
    L.add_numeric_label(labels, "k", 5)
    L.add_numeric_label(labels, "k", 7)
    assert labels == {"k": "12"}


def test_add_numeric_label_treats_garbage_as_zero():
    labels = {"k": "not-a-number"}
    L.add_numeric_label(labels, "k", 3)
    assert labels["k"] == "3"


def test_add_numeric_label_order_independent():
    amounts = [1073741824, 0, 17, 4294967296]
    results = set()
    for perm in itertools.permutations(amounts):
        labels = {}
        for amount in perm:
            L.add_numeric_label(labels, "memory", amount)
        results.add(labels["memory"])
    assert results == {str(sum(amounts))}


def test_numa_mapping_value_sorted_by_node():
    mapping = {1: ["4", "5"], 0: ["0", "1"], 3: ["7"]}
    assert L.numa_mapping_value(mapping) == "0-0.1_1-4.5_3-7"


def test_pci_groups_value_sorted_by_path():
    groups = {
        "pci0000:80/0000:80:01.0": ["4", "5"],
        "pci0000:00/0000:00:01.0": ["0", "1"],
    }
    assert L.pci_groups_value(groups) == "0.1_4.5"


def test_format_labels_keeps_insertion_order():
    labels = {"b": "1", "a": "2"}
    assert L.format_labels(labels) == ["b=1", "a=2"]
