import pytest

from grammar_reader import parse_grammar
from slr_parser_generator import SLRGenerator

EXPR_GRAMMAR = """
E -> E + T | T
T -> T * F | F
F -> ( E ) | id
"""

EPSILON_GRAMMAR = "A -> a A | ε"

DANGLING_ELSE_GRAMMAR = "S -> i S e S | i S | a"


@pytest.fixture
def expr_grammar():
    return parse_grammar(EXPR_GRAMMAR)


@pytest.fixture
def expr_generator(expr_grammar):
    return SLRGenerator(expr_grammar)


@pytest.fixture
def epsilon_generator():
    return SLRGenerator(parse_grammar(EPSILON_GRAMMAR))


@pytest.fixture
def dangling_else_generator():
    return SLRGenerator(parse_grammar(DANGLING_ELSE_GRAMMAR))
