import typing
from collections.abc import Sequence

import pytest

from siteblock.utils import typecheck


def test_check_option_type():
    typecheck.check_option_type("foo", 42, int)
    typecheck.check_option_type("foo", 42, float)
    typecheck.check_option_type("foo", 4.2, float)
    typecheck.check_option_type("foo", "42", str)
    typecheck.check_option_type("foo", None, typing.Optional[int])
    typecheck.check_option_type("foo", 8081, typing.Optional[int])
    typecheck.check_option_type("foo", ["a", "b"], Sequence[str])
    typecheck.check_option_type("foo", ("a",), typing.Sequence[str])
    typecheck.check_option_type("foo", "anything", typing.Any)

    with pytest.raises(TypeError):
        typecheck.check_option_type("foo", 42, str)
    with pytest.raises(TypeError):
        typecheck.check_option_type("foo", 4.2, int)
    with pytest.raises(TypeError):
        typecheck.check_option_type("foo", "42", typing.Optional[int])
    with pytest.raises(TypeError):
        typecheck.check_option_type("foo", "a", Sequence[str])
    with pytest.raises(TypeError):
        typecheck.check_option_type("foo", ["a", 1], Sequence[str])


def test_check_option_type_bool_is_not_a_number():
    typecheck.check_option_type("foo", True, bool)
    with pytest.raises(TypeError):
        typecheck.check_option_type("foo", True, int)
    with pytest.raises(TypeError):
        typecheck.check_option_type("foo", False, float)
    with pytest.raises(TypeError):
        typecheck.check_option_type("foo", 1, bool)


def test_typespec_to_str():
    assert typecheck.typespec_to_str(str) == "str"
    assert typecheck.typespec_to_str(int) == "int"
    assert typecheck.typespec_to_str(float) == "float"
    assert typecheck.typespec_to_str(bool) == "bool"
    assert typecheck.typespec_to_str(typing.Optional[str]) == "optional str"
    assert typecheck.typespec_to_str(typing.Optional[int]) == "optional int"
    assert typecheck.typespec_to_str(typing.Optional[float]) == "optional float"
    assert typecheck.typespec_to_str(Sequence[str]) == "sequence of str"
    with pytest.raises(NotImplementedError):
        typecheck.typespec_to_str(dict)
