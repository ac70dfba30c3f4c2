"""Copyright statement deduplication and year merging."""

from __future__ import annotations

import itertools

import pytest

from licensage.services.copyright_statements import (
    format_years,
    parse_statement,
    process,
    year_ranges,
)


def test_statements_with_same_holder_are_merged_into_one() -> None:
    result = process(
        [
            "Copyright 2010-2011 Example Corp.",
            "Copyright 2012 Example Corp.",
        ]
    )

    assert result.all_statements() == {"Copyright 2010-2012 Example Corp."}
    assert result.processed["Copyright 2010-2012 Example Corp."] == {
        "Copyright 2010-2011 Example Corp.",
        "Copyright 2012 Example Corp.",
    }
    assert result.unprocessed == frozenset()


def test_non_contiguous_years_render_as_list() -> None:
    result = process(["Copyright 2010 Example Corp.", "Copyright 2012 Example Corp."])

    assert result.all_statements() == {"Copyright 2010, 2012 Example Corp."}


def test_holder_normalization_ignores_case_and_punctuation() -> None:
    result = process(
        ["(c) 2015 ACME, Inc.", "(C) 2016 Acme Inc", "© 2017 acme inc."]
    )

    assert len(result.all_statements()) == 1
    (statement,) = result.all_statements()
    assert "2015-2017" in statement


def test_different_holders_stay_separate() -> None:
    result = process(["Copyright 2010 Alice", "Copyright 2010 Bob"])

    assert result.all_statements() == {"Copyright 2010 Alice", "Copyright 2010 Bob"}


def test_unrecognized_statements_pass_through_verbatim() -> None:
    result = process(["All rights reserved.", "Copyright 2020 Example Corp."])

    assert result.unprocessed == {"All rights reserved."}
    assert "All rights reserved." in result.all_statements()


def test_statement_without_years_keeps_holder() -> None:
    result = process(["Copyright Example Corp."])

    assert result.all_statements() == {"Copyright Example Corp."}


@pytest.mark.parametrize(
    "statements",
    [
        ["Copyright 2010 Example Corp.", "Copyright 2012 Example Corp."],
        ["Copyright (c) 2001-05 Foo", "Copyright (c) 2006 Foo", "garbage text"],
        ["© 2019 Bar", "(c) 2020 bar", "Copyright 2019 Baz"],
    ],
)
def test_processing_is_idempotent(statements: list[str]) -> None:
    once = process(statements).all_statements()

    assert process(once).all_statements() == once


def test_processing_is_order_independent() -> None:
    statements = [
        "Copyright 2012 Example Corp.",
        "Copyright 2010 Example Corp.",
        "Copyright 2011 Other",
        "not a statement",
    ]
    expected = process(statements).all_statements()

    for permutation in itertools.permutations(statements):
        assert process(permutation).all_statements() == expected


@pytest.mark.parametrize(
    ("statement", "first", "last"),
    [
        ("Copyright 2001-05 Example", 2001, 2005),
        ("Copyright 1998-02 Example", 1998, 2002),
    ],
)
def test_two_digit_range_end_expands_century(
    statement: str, first: int, last: int
) -> None:
    parsed = parse_statement(statement)

    assert parsed is not None
    assert parsed.years == frozenset(range(first, last + 1))


def test_processed_two_digit_range_is_rendered_in_full() -> None:
    assert process(["Copyright 1998-02 Example"]).all_statements() == {
        "Copyright 1998-2002 Example"
    }


def test_year_helpers() -> None:
    assert year_ranges([2012, 2010, 2011, 2015]) == [(2010, 2012), (2015, 2015)]
    assert format_years([2015, 2010, 2011, 2012]) == "2010-2012, 2015"
    assert format_years([]) == ""
