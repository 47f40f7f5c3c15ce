import pytest
from stamp.stamp_context import ContextRoot
from stamp.stamp_datatypes import (
    CustomFunction, WILDCARD, PathNotFound, MethodNotFound, EvaluationError, AccessError,
)
from stamp.stamp_interpreter import Evaluator, EvaluationContext
from stamp.stamp_invokers import Invokers, ReflectiveMethodResolver, of_custom_function


class Order:
    def __init__(self, number, lines):
        self.number = number
        self.lines = lines

    def total(self):
        return sum(line["price"] for line in self.lines)

    def _internal(self):
        return "hidden"


@pytest.fixture
def order():
    return Order(17, [{"name": "tea", "price": 3}, {"name": "cake", "price": 4}])


@pytest.fixture
def calls():
    return []


@pytest.fixture
def context(order, calls):
    def record(args):
        calls.append(args)
        return True

    invokers = Invokers([
        of_custom_function(CustomFunction("add", (int, int), lambda args: args[0] + args[1])),
        of_custom_function(CustomFunction("echo", (WILDCARD,), lambda args: args[0])),
        of_custom_function(CustomFunction("touch", (WILDCARD,), record)),
    ])
    stack = ContextRoot(order, {"currency": "EUR"}).find(None)
    return EvaluationContext(stack, [invokers, ReflectiveMethodResolver()])


@pytest.fixture
def ev():
    return Evaluator()


def test_arithmetic_and_comparison(ev, context):
    assert ev.evaluate("1 + 1", context) == 2
    assert ev.evaluate("7 / 2", context) == 3.5
    assert ev.evaluate("7 % 4 * 2", context) == 6
    assert ev.evaluate("-(2 + 3)", context) == -5
    assert ev.evaluate("'a' + 'b'", context) == "ab"
    assert ev.evaluate("2 <= 3", context) is True
    assert ev.evaluate("number == 17 ? 'yes' : 'no'", context) == "yes"


def test_variables_from_subject_and_bindings(ev, context):
    assert ev.evaluate("number", context) == 17
    assert ev.evaluate("currency", context) == "EUR"
    assert ev.evaluate("lines[1].name", context) == "cake"
    assert ev.evaluate("lines[0]['price']", context) == 3


def test_unknown_variable_raises_path_not_found(ev, context):
    with pytest.raises(PathNotFound) as excinfo:
        ev.evaluate("missing", context)
    assert excinfo.value.key == "missing"
    with pytest.raises(PathNotFound):
        ev.evaluate("lines[0].colour", context)
    with pytest.raises(PathNotFound):
        ev.evaluate("_internal", context)


def test_custom_function_call(ev, context):
    assert ev.evaluate("add(3, 4)", context) == 7
    assert ev.evaluate("add(true, 1)", context) == 2
    assert ev.evaluate("echo(null)", context) is None


def test_method_not_found(ev, context):
    with pytest.raises(MethodNotFound) as excinfo:
        ev.evaluate("add('x', 4)", context)
    assert excinfo.value.name == "add"
    assert excinfo.value.argument_types == [str, int]


def test_reflective_fallback_on_subject_and_receiver(ev, context):
    assert ev.evaluate("total()", context) == 7
    assert ev.evaluate("currency.lower()", context) == "eur"
    with pytest.raises(MethodNotFound):
        ev.evaluate("_internal()", context)


def test_short_circuit(ev, context, calls):
    assert ev.evaluate("false and touch(1)", context) is False
    assert ev.evaluate("true or touch(2)", context) is True
    assert calls == []
    assert ev.evaluate("true && touch(3)", context) is True
    assert calls == [[3]]


def test_operator_type_errors_are_evaluation_errors(ev, context):
    with pytest.raises(EvaluationError):
        ev.evaluate("1 / 0", context)
    with pytest.raises(EvaluationError):
        ev.evaluate("'a' - 1", context)
    with pytest.raises(EvaluationError):
        ev.evaluate("lines[9]", context)


def test_call_stack_unwinds_after_failure(ev, context):
    with pytest.raises(AccessError):
        ev.evaluate("lines.index(42)", context)
    assert ev.call_stack == []


def test_list_literal(ev, context):
    assert ev.evaluate("[1, number, 'x']", context) == [1, 17, "x"]
