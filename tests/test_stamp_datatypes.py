import pytest
from stamp.stamp_datatypes import (
    Args, WILDCARD, ExpectedType, CustomFunction, Scope,
    MethodNotFound, ExpressionSyntaxError, EvaluationError, StampError,
)

# --- Args Tests ---

def test_args_validate_exact_types():
    args = Args.of(int, str)
    assert args.validate([int, str])
    assert not args.validate([str, int])


def test_args_validate_length_mismatch():
    args = Args.of(int, int)
    assert not args.validate([int])
    assert not args.validate([int, int, int])
    assert Args.of().validate([])


def test_args_validate_subclass():
    class Base: pass
    class Derived(Base): pass

    assert Args.of(Base).validate([Derived])
    assert not Args.of(Derived).validate([Base])
    # bool is an int
    assert Args.of(int).validate([bool])


def test_args_wildcard_on_either_side():
    assert Args.of(WILDCARD, int).validate([str, int])
    assert Args.of(str).validate([WILDCARD])
    assert Args.of(WILDCARD).validate([WILDCARD])
    assert not Args.of(WILDCARD, int).validate([str, str])


def test_args_union_tuple():
    args = Args.of((int, str))
    assert args.validate([int])
    assert args.validate([str])
    assert not args.validate([float])


def test_args_equality_and_hash():
    assert Args.of(int, str) == Args([int, str])
    assert hash(Args.of(int, str)) == hash(Args((int, str)))
    assert len(Args.of(int, str, float)) == 3
    assert repr(Args.of(int, WILDCARD)) == "Args(int, *)"


def test_wildcard_is_enum_member():
    assert WILDCARD is ExpectedType.WILDCARD
    assert repr(WILDCARD) == "WILDCARD"


def test_custom_function_normalises_types():
    cf = CustomFunction("twice", [int], lambda args: args[0] * 2)
    assert cf.parameter_types == (int,)
    assert cf.function([4]) == 8

# --- Scope Tests ---

def test_scope_init():
    parent = Scope()
    child = Scope(parent=parent)
    assert child.parent is parent
    assert not child.bindings
    assert Scope().parent is None


def test_scope_setitem_getitem_str_key():
    scope = Scope()
    scope["a"] = 1
    assert scope["a"] == 1
    with pytest.raises(KeyError):
        _ = scope["b"]
    with pytest.raises(TypeError):
        scope[1] = "x"


def test_scope_subject_mapping_and_attributes():
    class Person:
        def __init__(self):
            self.name = "Ada"
            self._secret = 1

    assert Scope(subject={"x": 5})["x"] == 5
    scope = Scope(subject=Person())
    assert scope["name"] == "Ada"
    assert "_secret" not in scope


def test_scope_chain_lookup_order():
    parent = Scope(subject={"a": 100, "b": 200})
    child = Scope(parent=parent, subject={"b": 20})
    child["c"] = 3

    assert child["a"] == 100  # from parent
    assert child["b"] == 20   # subject shadows parent
    assert child["c"] == 3
    child["b"] = 2            # bindings shadow subject
    assert child["b"] == 2
    assert parent["b"] == 200
    assert child.find_owner("a") is parent
    assert child.get("missing", "dflt") == "dflt"
    assert child.depth == 1


# --- Error Tests ---

def test_error_hierarchy_and_messages():
    err = MethodNotFound("add", [int, None])
    assert isinstance(err, EvaluationError)
    assert isinstance(err, StampError)
    assert str(err) == "Method add(int, *) cannot be found"

    syn = ExpressionSyntaxError("1 +", "UnexpectedToken", 1, 4)
    assert syn.line == 1 and syn.col == 4
    assert "line 1, col 4" in str(syn)


def test_scope_subject_methods_are_not_variables():
    class Item:
        size = 3

        def title(self):
            return "method"

    outer = Scope(subject={"title": "Staff"})
    inner = Scope(parent=outer, subject=Item())
    assert inner["size"] == 3
    assert inner["title"] == "Staff"
    assert inner.find_owner("title") is outer
    assert Scope(parent=outer, subject="text")["title"] == "Staff"
