# tests/test_end_to_end.py
"""
End-to-end tests: model source → read → generate → exec → parse input
with the generated parser → inspect the resulting objects.
"""

import logging

import pytest

from hpgen.codegen import GeneratorConfig
from hpgen.runtime import ParseFailure
from tests.conftest import (
    ASSIGNMENT_MODEL, CLASHING_MODEL, DIGIT_MODEL, DISPATCH_MODEL, DOTS_MODEL,
    GREETING_MODEL, LIST_MODEL, MARKS_MODEL, NUMBER_MODEL, OPERATOR_MODEL,
    PARSER_MODEL, WHITESPACE_MODEL,
    build_namespace, build_parser,
)


class TestE2ERepetition:

    def test_digits_are_collected(self):
        number = build_parser(NUMBER_MODEL).parse("123")
        assert number.digits == ["1", "2", "3"]
        assert str(number) == "Number(digits = [1,2,3])"

    def test_zero_digits_is_not_a_failure(self):
        number = build_parser(NUMBER_MODEL).parse("")
        assert number.digits == []

    def test_repetition_stops_at_first_mismatch(self):
        parser = build_parser(NUMBER_MODEL)
        number = parser.parse("12ab", complete=False)
        assert number.digits == ["1", "2"]
        assert parser.pos == 2

    def test_trailing_input_is_reported(self):
        with pytest.raises(ParseFailure) as info:
            build_parser(NUMBER_MODEL).parse("12ab")
        assert info.value.message == "Unexpected trailing input"
        assert info.value.column == 3

    def test_root_extractor(self):
        assert build_parser(DIGIT_MODEL).parse("7") == "7"


class TestE2EPluralLiterals:

    def test_repeated_literal_accumulates(self):
        dots = build_parser(DOTS_MODEL).parse("...;")
        assert dots.dots == [".", ".", "."]
        assert str(dots) == "Dots(dots = [.,.,.])"

    def test_zero_repetitions(self):
        assert build_parser(DOTS_MODEL).parse(";").dots == []

    def test_missing_terminator(self):
        with pytest.raises(ParseFailure) as info:
            build_parser(DOTS_MODEL).parse("..")
        assert info.value.message == "Failed to parse Dots"


class TestE2EEmptyMatches:

    def test_empty_match_is_not_an_occurrence(self):
        assert build_parser(MARKS_MODEL).parse("").marks == []

    def test_occurrences_stop_at_empty_match(self):
        marks = build_parser(MARKS_MODEL).parse("! !").marks
        assert [mark.bang for mark in marks] == [True, True]


class TestE2ESequence:

    def test_greeting(self):
        greeting = build_parser(GREETING_MODEL).parse("hello   world")
        assert str(greeting) == "Greeting()"

    def test_greeting_failure_names_entity(self):
        with pytest.raises(ParseFailure) as info:
            build_parser(GREETING_MODEL).parse("hello there")
        assert info.value.message == "Failed to parse Greeting"
        assert info.value.position == 0
        assert 'Expected "world"' in str(info.value.__cause__)

    def test_first_literal_failure(self):
        with pytest.raises(ParseFailure) as info:
            build_parser(GREETING_MODEL).parse("goodbye world")
        assert info.value.message == "Failed to parse Greeting"


class TestE2EPartialPasses:

    def test_failed_pass_is_discarded(self):
        parser = build_parser(LIST_MODEL)
        numbers = parser.parse("[1,2,3", complete=False)
        assert numbers.values == ["1", "2"]
        assert numbers.closed is False
        assert parser.source[parser.pos:] == "3"

    def test_complete_list(self):
        numbers = build_parser(LIST_MODEL).parse("[ 1, 2, ]")
        assert numbers.values == ["1", "2"]
        assert numbers.closed is True
        assert str(numbers) == "Numbers(values = [1,2], closed = True)"

    def test_empty_list(self):
        numbers = build_parser(LIST_MODEL).parse("[]")
        assert numbers.values == []
        assert numbers.closed is True

    def test_fresh_instance_per_parse(self):
        parser = build_parser(LIST_MODEL)
        first = parser.parse("[1,]")
        second = parser.parse("[2,]")
        assert first.values == ["1"]
        assert second.values == ["2"]


class TestE2EAlternation:

    def test_declaration_order_wins(self):
        parser = build_parser(OPERATOR_MODEL)
        operator = parser.parse("ab", complete=False)
        assert operator.symbol == "a"
        assert parser.pos == 1

    def test_later_option(self):
        assert build_parser(OPERATOR_MODEL).parse("b").symbol == "b"

    def test_exhausted_alternation(self):
        with pytest.raises(ParseFailure) as info:
            build_parser(OPERATOR_MODEL).parse("c")
        assert info.value.message == "Failed to parse Operator"
        assert info.value.__cause__.message == "Expected: operator"

    def test_virtual_dispatch(self):
        ns = build_namespace(DISPATCH_MODEL)
        parser = ns["Parser"]()
        value = parser.parse("42")
        assert isinstance(value, ns["IntLiteral"])
        assert isinstance(value, ns["Value"])
        assert str(value) == 'IntLiteral(value = "42")'
        value = parser.parse("'hi'")
        assert isinstance(value, ns["StringLiteral"])
        assert value.value == "hi"

    def test_virtual_dispatch_failure(self):
        with pytest.raises(ParseFailure) as info:
            build_parser(DISPATCH_MODEL).parse("?")
        assert info.value.message == "Failed to parse Value"


class TestE2ENested:

    def test_simple_assignment(self):
        assignment = build_parser(ASSIGNMENT_MODEL).parse("x = 42")
        assert assignment.name == "x"
        assert assignment.annotation is None
        assert assignment.operator == "="
        assert assignment.value.digits == "42"

    def test_optional_part_and_nested_alternation(self):
        ns = build_namespace(ASSIGNMENT_MODEL)
        assignment = ns["Parser"]().parse("total: int += count")
        assert assignment.annotation.type == "int"
        assert assignment.operator == "+="
        assert isinstance(assignment.value, ns["Variable"])
        assert str(assignment) == (
            'Assignment(name = "total", annotation = Annotation(type = "int"), '
            'operator = "+=", value = Variable(name = "count"))'
        )

    def test_failure_location(self):
        with pytest.raises(ParseFailure) as info:
            build_parser(ASSIGNMENT_MODEL).parse("x\n= ?")
        assert info.value.message == "Failed to parse Assignment"
        assert (info.value.line, info.value.column) == (1, 1)


class TestE2EWhitespace:

    def test_custom_whitespace(self):
        ns = build_namespace(WHITESPACE_MODEL)
        parser = ns["Parser"]()
        assert parser.WHITESPACE == "[ ]*"
        pair = parser.parse("ab  cd")
        assert (pair.left, pair.right) == ("ab", "cd")

    def test_newline_is_not_whitespace(self):
        with pytest.raises(ParseFailure):
            build_parser(WHITESPACE_MODEL).parse("ab\ncd")


class TestE2ENameClashes:

    def test_module_names_are_not_shadowed(self):
        ns = build_namespace(CLASHING_MODEL)
        parser = ns["Parser"]()
        result = parser.parse("abc")
        assert isinstance(result, ns["ParserBase_"])
        assert isinstance(result, ns["Extracting_"])
        assert result.name == "abc"
        assert str(result) == 'ParserBase_(name = "abc")'
        assert ns["Extracting"].Word.pattern == "[a-z]+"

    def test_routine_locals_are_not_shadowed(self):
        ns = build_namespace(CLASHING_MODEL)
        result = ns["Parser"]().load("xyz").parse_alt1_()
        assert isinstance(result, ns["Alt1"])
        assert result.word == "xyz"

    def test_entity_named_like_parser_class(self):
        config = GeneratorConfig(parser_class="WordParser")
        result = build_parser(PARSER_MODEL, config).parse("abc")
        assert str(result) == 'Parser(name = "abc")'


class TestE2EConfig:

    def test_custom_parser_class(self):
        config = GeneratorConfig(parser_class="GreetingParser")
        greeting = build_parser(GREETING_MODEL, config).parse("hello world")
        assert str(greeting) == "Greeting()"

    def test_annotated_module_runs(self):
        config = GeneratorConfig(emit_info=True, emit_rule=True, sources=["n.hpg"])
        number = build_parser(NUMBER_MODEL, config).parse("9")
        assert number.digits == ["9"]

    def test_routine_entry_is_logged(self, caplog):
        parser = build_parser(GREETING_MODEL)
        with caplog.at_level(logging.DEBUG, logger="hpgen.runtime"):
            parser.parse("hello world")
        assert any("parse_greeting" in r.getMessage() for r in caplog.records)
