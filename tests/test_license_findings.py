"""Cleaning and merging of license findings maps."""

from __future__ import annotations

import itertools

from licensage.domain.models import (
    CopyrightFinding,
    CopyrightGarbage,
    LicenseFinding,
    Location,
)
from licensage.services.license_findings import (
    clean,
    merge,
    process_statements,
    remove_garbage,
    to_findings_map,
)

GARBAGE = CopyrightGarbage(frozenset({"Copyright (c) <year> <owner>"}))


def test_remove_garbage_drops_exact_matches_only() -> None:
    findings = {
        "MIT": frozenset({"Copyright (c) <year> <owner>", "Copyright 2020 Jane"}),
        "Apache-2.0": frozenset(),
    }

    cleaned = remove_garbage(findings, GARBAGE)

    assert cleaned == {
        "Apache-2.0": frozenset(),
        "MIT": frozenset({"Copyright 2020 Jane"}),
    }
    assert list(cleaned) == ["Apache-2.0", "MIT"]
    assert "Copyright (c) <year> <owner>" in findings["MIT"]


def test_process_statements_canonicalizes_each_license() -> None:
    findings = {"MIT": frozenset({"Copyright 2019 Jane", "Copyright 2020 Jane"})}

    expected = {"MIT": frozenset({"Copyright 2019-2020 Jane"})}
    assert process_statements(findings) == expected


def test_clean_removes_garbage_that_appears_only_after_merging() -> None:
    garbage = CopyrightGarbage(frozenset({"Copyright 2019-2020 Jane"}))
    findings = {"MIT": frozenset({"Copyright 2019 Jane", "Copyright 2020 Jane"})}

    assert clean(findings, garbage) == {"MIT": frozenset()}


def test_clean_is_idempotent() -> None:
    findings = {
        "MIT": frozenset(
            {
                "Copyright 2019 Jane",
                "Copyright 2021 Jane",
                "Copyright (c) <year> <owner>",
            }
        ),
        "BSD-3-Clause": frozenset({"(c) 2001 Foo", "(c) 2002 Foo"}),
    }

    once = clean(findings, GARBAGE)

    assert clean(once, GARBAGE) == once


def test_merge_unions_statements_per_license() -> None:
    first = {"MIT": frozenset({"a"}), "ISC": frozenset({"x"})}
    second = {"MIT": frozenset({"b"})}

    merged = merge([first, second])

    assert merged == {"ISC": frozenset({"x"}), "MIT": frozenset({"a", "b"})}
    assert list(merged) == ["ISC", "MIT"]
    assert first == {"MIT": frozenset({"a"}), "ISC": frozenset({"x"})}


def test_merge_of_nothing_is_empty() -> None:
    assert merge([]) == {}


def test_merge_is_order_independent() -> None:
    maps = [
        {"MIT": frozenset({"a"})},
        {"MIT": frozenset({"b"}), "GPL-2.0-only": frozenset()},
        {"Apache-2.0": frozenset({"c"})},
    ]
    expected = merge(maps)

    for permutation in itertools.permutations(maps):
        assert merge(permutation) == expected


def test_to_findings_map_projects_copyright_statements() -> None:
    location = Location("LICENSE", 1, 1)
    findings = [
        LicenseFinding(
            "MIT",
            frozenset({location}),
            frozenset({CopyrightFinding("Copyright 2020 Jane", frozenset({location}))}),
        ),
        LicenseFinding("Apache-2.0", frozenset({location})),
    ]

    assert to_findings_map(findings) == {
        "Apache-2.0": frozenset(),
        "MIT": frozenset({"Copyright 2020 Jane"}),
    }
