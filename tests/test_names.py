import random

from callgen.names import NameAllocator


def test_first_occurrence_is_bare_and_repeats_are_suffixed():
    names = NameAllocator(random.Random(1))
    assert names.allocate("alpha") == "Alpha"
    assert names.allocate("alpha") == "Alpha_2"
    assert names.allocate("alpha") == "Alpha_3"


def test_normalization_spaces_and_capital():
    names = NameAllocator()
    assert names.allocate("  new york ") == "New_york"
    assert names.allocate("new york") == "New_york_2"


def test_prefix_is_part_of_the_key():
    names = NameAllocator()
    assert names.allocate("us", prefix="Fleet#") == "Fleet#Us"
    assert names.allocate("us", prefix="Site#") == "Site#Us"
    assert names.allocate("us", prefix="Fleet#") == "Fleet#Us_2"


def test_suffix_skips_names_already_issued():
    names = NameAllocator()
    assert names.allocate("beta_2") == "Beta_2"
    assert names.allocate("beta") == "Beta"
    assert names.allocate("beta") == "Beta_3"


def test_empty_input_falls_back_to_uuid():
    names = NameAllocator(random.Random(7))
    name = names.allocate("")
    assert len(name) == 36 and name.count("-") == 4


def test_single_character_gets_numeric_suffix():
    names = NameAllocator(random.Random(7))
    name = names.allocate("x")
    assert name.startswith("X")
    assert name[1:].isdigit() and len(name) == 4


def test_many_repeats_stay_unique():
    names = NameAllocator()
    issued = [names.allocate("lorem", prefix="Unit#") for _ in range(500)]
    assert len(set(issued)) == 500
    assert len(names) == 500


def test_uuid_fallback_is_reproducible_with_seed():
    first = NameAllocator(random.Random(7)).allocate("")
    second = NameAllocator(random.Random(7)).allocate("")
    assert first == second
