"""Regression tests for member discovery, path reads and name normalization."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

import pytest
from pydantic import BaseModel, Field

from fieldmap.domain import (
    MISSING,
    NAME_MATCHING_EXACT,
    domain_describe_members,
    domain_is_mapping_shape,
    domain_is_structured_shape,
    domain_normalize_member_name,
    domain_read_member,
    domain_read_member_path,
    domain_strip_member_prefix,
)
from mapping_fixtures import Department, Student, build_student


class Color(Enum):
    RED = 1


@dataclass
class Invoice:
    number: str
    lines: list[str] = field(default_factory=list)
    total: Decimal = Decimal("0")


class AliasedInvoice(BaseModel):
    number: str = Field(alias="invoiceNumber")
    issued_on: date | None = None


class AnnotatedInvoice:
    kind: ClassVar[str] = "annotated"
    _cache: dict
    number: str
    currency: str = "USD"

    def __init__(self, number: str, currency: str = "USD"):
        self.number = number
        self.currency = currency


def test_domain_describe_members_reads_dataclass_fields_in_order() -> None:
    """Describe dataclass members with annotations and default factories.

    Returns:
        None: Assertions validate dataclass discovery.

    Raises:
        AssertionError: Raised when member descriptors are wrong.
    """

    members = domain_describe_members(Invoice)

    assert [member.name for member in members] == ["number", "lines", "total"]
    assert members[0].member_is_required
    assert members[1].annotation == list[str]
    assert members[1].default_factory() == []
    assert members[2].default_factory() == Decimal("0")


def test_domain_describe_members_uses_pydantic_aliases_for_construction() -> None:
    """Describe pydantic fields with alias init names and optional defaults.

    Returns:
        None: Assertions validate pydantic discovery.

    Raises:
        AssertionError: Raised when alias handling is wrong.
    """

    number_member, issued_member = domain_describe_members(AliasedInvoice)

    assert number_member.name == "number"
    assert number_member.init_name == "invoiceNumber"
    assert number_member.member_is_required
    assert issued_member.annotation == date | None
    assert issued_member.default_factory() is None


def test_domain_describe_members_skips_private_and_class_variables() -> None:
    """Describe annotated plain classes without ClassVar or underscore members.

    Returns:
        None: Assertions validate annotated class discovery.

    Raises:
        AssertionError: Raised when private members leak.
    """

    members = domain_describe_members(AnnotatedInvoice)

    assert [member.name for member in members] == ["number", "currency"]
    assert members[0].member_is_required
    assert members[1].default_factory() == "USD"


def test_domain_shape_predicates_classify_supported_shapes() -> None:
    """Classify structured, mapping and scalar annotations.

    Returns:
        None: Assertions validate shape predicates.

    Raises:
        AssertionError: Raised when a shape is misclassified.
    """

    assert domain_is_structured_shape(Student)
    assert domain_is_structured_shape(AliasedInvoice)
    assert domain_is_structured_shape(AnnotatedInvoice)
    assert not domain_is_structured_shape(str)
    assert not domain_is_structured_shape(date)
    assert not domain_is_structured_shape(Color)
    assert not domain_is_structured_shape(dict)
    assert not domain_is_structured_shape(list[int])
    assert domain_is_mapping_shape(dict)
    assert not domain_is_mapping_shape(Student)
    assert domain_describe_members(dict) == ()


def test_domain_read_member_path_propagates_none_and_missing_keys() -> None:
    """Read dotted paths through objects and mappings.

    Returns:
        None: Assertions validate path reads.

    Raises:
        AssertionError: Raised when a path read is wrong.
    """

    student = build_student()
    orphan = Student(
        id=2,
        first_name="Bo",
        middle_name=None,
        last_name="Kim",
        date_of_birth=None,
        department=None,
    )

    assert domain_read_member_path(student, ("department", "name")) == "CS"
    assert domain_read_member_path(orphan, ("department", "name")) is None
    assert domain_read_member_path({"department": {"name": "Math"}}, ("department", "name")) == "Math"
    assert domain_read_member_path({"department": {}}, ("department", "name")) is MISSING
    assert domain_read_member({"id": None}, "id") is None
    with pytest.raises(AttributeError):
        domain_read_member(Department(name="CS"), "title")


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("first_name", "firstname"),
        ("FirstName", "firstname"),
        ("FIRST_NAME", "firstname"),
    ],
)
def test_domain_normalize_member_name_ignores_case_and_underscores(name: str, expected: str) -> None:
    """Normalize names under flexible matching.

    Args:
        name: Raw member name.
        expected: Expected comparison key.

    Returns:
        None: Assertions validate normalization.

    Raises:
        AssertionError: Raised when normalization is wrong.
    """

    assert domain_normalize_member_name(name) == expected
    assert domain_normalize_member_name(name, NAME_MATCHING_EXACT) == name


def test_domain_normalize_member_name_rejects_unknown_strategy() -> None:
    """Reject an unknown name matching strategy.

    Returns:
        None: Assertions validate strategy validation.

    Raises:
        AssertionError: Raised when the strategy is accepted.
    """

    with pytest.raises(ValueError):
        domain_normalize_member_name("id", "fuzzy")


def test_domain_strip_member_prefix_returns_flattened_remainder() -> None:
    """Split flattened destination names after a source member prefix.

    Returns:
        None: Assertions validate flattening prefix handling.

    Raises:
        AssertionError: Raised when prefix handling is wrong.
    """

    assert domain_strip_member_prefix("department_name", "department") == "name"
    assert domain_strip_member_prefix("DepartmentName", "department") == "name"
    assert domain_strip_member_prefix("department", "department") is None
    assert domain_strip_member_prefix("full_name", "department") is None
    assert domain_strip_member_prefix("department_name", "department", NAME_MATCHING_EXACT) == "name"
    assert domain_strip_member_prefix("departmentName", "department", NAME_MATCHING_EXACT) == "Name"
    assert domain_strip_member_prefix("departments", "department", NAME_MATCHING_EXACT) is None


def test_domain_describe_members_rejects_non_classes() -> None:
    """Reject member discovery on instances.

    Returns:
        None: Assertions validate argument checking.

    Raises:
        AssertionError: Raised when an instance is accepted.
    """

    with pytest.raises(TypeError):
        domain_describe_members(build_student())


def test_member_info_annotation_falls_back_to_any_for_untyped_pydantic_fields() -> None:
    """Keep declared annotations for pydantic fields typed `Any`.

    Returns:
        None: Assertions validate annotation fallback.

    Raises:
        AssertionError: Raised when the annotation is lost.
    """

    class Envelope(BaseModel):
        payload: Any = None

    (payload_member,) = domain_describe_members(Envelope)

    assert payload_member.annotation is Any
    assert not payload_member.member_is_required
