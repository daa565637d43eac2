import pytest

from slr_parser_generator import END_MARKER, EPSILON, Action, SLRGenerator
from slr_simulator import ParseSimulator, simulate_parser, simulate_parsing, tokenize
from grammar_reader import parse_grammar

from conftest import EXPR_GRAMMAR


def _run(generator, text, **kwargs):
    return simulate_parsing(text, generator.augmented, generator.table, **kwargs)


def _shape(node):
    if not node.children:
        return node.label
    return (node.label, *(_shape(c) for c in node.children))


def _replayable(steps):
    return [(s.state_stack, s.symbol_stack, s.remaining_input, s.label, s.status) for s in steps]


def test_tokenize_prefers_longest_terminal():
    assert tokenize("id*(id+id)", {"id", "*", "(", ")", "+", END_MARKER}) == \
        ["id", "*", "(", "id", "+", "id", ")", END_MARKER]
    assert tokenize("abab a", {"a", "ab", END_MARKER}) == ["ab", "ab", "a", END_MARKER]


def test_tokenize_keeps_unknown_characters():
    assert tokenize(" id #\tid ", {"id", END_MARKER}) == ["id", "#", "id", END_MARKER]
    assert tokenize("", {"id"}) == [END_MARKER]


def test_expression_input_is_accepted(expr_generator):
    steps = _run(expr_generator, "id * ( id + id )")
    final = steps[-1]

    assert final.status == "Accept"
    assert final.action == Action.accept()
    assert final.error is None
    assert [node.label for node in final.forest] == ["E"]
    assert _shape(final.forest[0]) == (
        "E", ("T", ("T", ("F", "id")), "*",
              ("F", "(", ("E", ("E", ("T", ("F", "id"))), "+", ("T", ("F", "id"))), ")"))
    )
    assert final.state_stack == [0, 1]
    assert final.symbol_stack == [END_MARKER, "E"]
    assert final.remaining_input == [END_MARKER]


def test_step_trace_shape(expr_generator):
    steps = _run(expr_generator, "id")

    assert [s.label for s in steps] == [
        "Shift S5",
        "Reduce R6: F → id",
        "GoTo(F, 0) = 3",
        "Reduce R4: T → F",
        "GoTo(T, 0) = 2",
        "Reduce R2: E → T",
        "GoTo(E, 0) = 1",
        "Accept",
    ]
    assert [s.step for s in steps] == list(range(len(steps)))
    # shift snapshots are taken before the token is pushed
    assert steps[0].state_stack == [0]
    assert steps[0].remaining_input == ["id", END_MARKER]
    assert steps[0].forest == []
    assert steps[2].state_stack == [0, 3]
    assert steps[2].symbol_stack == [END_MARKER, "F"]
    assert all(s.status == "Processing" for s in steps[:-1])


def test_leaves_carry_token_text(expr_generator):
    steps = _run(expr_generator, "id")
    leaf = steps[1].forest[0]

    assert leaf.label == "id"
    assert leaf.value == "id"
    assert leaf.is_leaf()


def test_epsilon_reduction_builds_empty_leaf(epsilon_generator):
    steps = _run(epsilon_generator, "a a")

    assert steps[-1].status == "Accept"
    eps_reductions = [s for s in steps if s.action == Action.reduce(2)]
    assert len(eps_reductions) == 1
    assert eps_reductions[0].label == "Reduce R2: A → ε"

    root = steps[-1].forest[0]
    assert _shape(root) == ("A", "a", ("A", "a", ("A", EPSILON)))
    eps_leaf = root.children[1].children[1].children[0]
    assert eps_leaf.label == EPSILON
    assert eps_leaf.value is None


def test_conflicting_table_still_parses(dangling_else_generator):
    steps = _run(dangling_else_generator, "i a e a")
    assert steps[-1].status == "Accept"
    assert _shape(steps[-1].forest[0]) == ("S", "i", ("S", "a"), "e", ("S", "a"))


def test_unknown_token_halts_at_first_position(expr_generator):
    steps = _run(expr_generator, "x + id")

    assert len(steps) == 1
    assert steps[0].status == "Error"
    assert steps[0].error == "syntax"
    assert steps[0].remaining_input == ["x", "+", "id", END_MARKER]
    assert "state 0" in steps[0].explanation
    assert "'x'" in steps[0].explanation


def test_syntax_error_mid_input(expr_generator):
    steps = _run(expr_generator, "id + @")

    assert steps[-1].error == "syntax"
    assert steps[-1].remaining_input == ["@", END_MARKER]
    assert not any(s.is_error for s in steps[:-1])


def test_premature_end_of_input(expr_generator):
    steps = _run(expr_generator, "id +")

    assert steps[-1].error == "syntax"
    assert steps[-1].remaining_input == [END_MARKER]


def test_missing_goto_is_reported_separately():
    generator = SLRGenerator(parse_grammar(EXPR_GRAMMAR))
    del generator.table.goto[0]["F"]

    steps = _run(generator, "id")

    assert steps[-1].error == "goto"
    assert steps[-1].explanation.startswith("Goto Error")
    assert steps[-1].state_stack == [0]


def test_step_limit_halts_with_error(expr_generator):
    steps = _run(expr_generator, "id", max_steps=3)

    assert len(steps) == 4
    assert steps[-1].status == "Error"
    assert steps[-1].error == "step-limit"


def test_runtime_errors_become_a_final_step():
    generator = SLRGenerator(parse_grammar(EXPR_GRAMMAR))
    id_state = generator.table.get_action(0, "id").value
    generator.table.action[id_state][END_MARKER] = Action.reduce(99)

    steps = _run(generator, "id")

    assert steps[-1].error == "runtime"
    assert steps[-1].explanation.startswith("Runtime Error")


def test_resuming_matches_running_from_scratch(expr_generator):
    full = _run(expr_generator, "id * ( id + id )")

    for k, captured in enumerate(full):
        tail = " ".join(captured.remaining_input[:-1])
        resumed = _run(expr_generator, tail,
                       state_stack=captured.state_stack,
                       symbol_stack=captured.symbol_stack)
        assert _replayable(full[:k]) + _replayable(resumed) == _replayable(full)


def test_resumed_symbols_get_placeholder_nodes(expr_generator):
    full = _run(expr_generator, "id + id")
    captured = full[4]

    resumed = _run(expr_generator, " ".join(captured.remaining_input[:-1]),
                   state_stack=captured.state_stack, symbol_stack=captured.symbol_stack)

    assert [n.label for n in resumed[0].forest] == captured.symbol_stack[1:]
    assert resumed[-1].status == "Accept"


@pytest.mark.parametrize("states,symbols,expected_states,expected_symbols", [
    ([0, 5], ["id"], [0, 5], [END_MARKER, "id"]),
    (None, [END_MARKER, "id"], [0, 0], [END_MARKER, "id"]),
    ([0], None, [0], [END_MARKER]),
])
def test_mismatched_resume_stacks_are_padded(expr_generator, states, symbols,
                                             expected_states, expected_symbols):
    steps = _run(expr_generator, "", state_stack=states, symbol_stack=symbols)

    assert steps[0].state_stack == expected_states
    assert steps[0].symbol_stack == expected_symbols


def test_node_ids_are_unique_per_run(expr_generator):
    simulator = ParseSimulator(expr_generator.augmented, expr_generator.table)
    first = simulator.run("id + id")
    second = simulator.run("id + id")

    def ids(node):
        yield node.id
        for child in node.children:
            yield from ids(child)

    first_ids = list(ids(first[-1].forest[0]))
    assert len(first_ids) == len(set(first_ids))
    assert first_ids == list(ids(second[-1].forest[0]))


def test_earlier_snapshots_are_not_mutated(expr_generator):
    steps = _run(expr_generator, "id + id")

    assert steps[0].forest == []
    assert steps[0].state_stack == [0]
    assert steps[1].symbol_stack == [END_MARKER, "id"]


def test_simulate_parser_from_text():
    steps = simulate_parser("S -> ( S ) S | ε", "( ( ) ) ( )")

    assert steps[-1].status == "Accept"
    assert steps[-1].to_dict()["forest"][0]["label"] == "S"


def test_typed_end_marker_is_not_end_of_input(expr_generator):
    steps = _run(expr_generator, "id $ + + +")

    assert not any(s.status == "Accept" for s in steps)
    assert steps[-1].error == "syntax"
    assert steps[-1].remaining_input == [END_MARKER, "+", "+", "+", END_MARKER]
