import itertools
import logging

from slr_parser_generator import ACCEPT, END_MARKER, EPSILON, REDUCE, SHIFT, generate_slr_tables

simulator_log = logging.getLogger('slr.simulator')

DEFAULT_MAX_STEPS = 500

# --- 1. DS ---

class ParseTreeNode:
    """A parse tree node. Leaves for terminals carry the matched text in `value`."""

    def __init__(self, id, label, children=None, value=None):
        self.id = id
        self.label = label
        self.children = children or []
        self.value = value

    def is_leaf(self):
        return not self.children

    def to_dict(self):
        node = {'id': self.id, 'label': self.label,
                'children': [c.to_dict() for c in self.children]}
        if self.value is not None:
            node['value'] = self.value
        return node

    def __repr__(self):
        if self.is_leaf():
            return f"ParseTreeNode({self.label!r})"
        return f"ParseTreeNode({self.label!r}, {self.children!r})"


class ParseStep:
    """One observable event of a simulation run.

    Stacks, input and forest are snapshots; later steps never modify them.
    `error` names the failure kind ('syntax', 'goto', 'step-limit',
    'runtime') on a halting error step and is None otherwise.
    """

    def __init__(self, step, action, state_stack, symbol_stack, remaining_input,
                 label, explanation, forest, status='Processing', error=None):
        self.step = step
        self.action = action
        self.state_stack = list(state_stack)
        self.symbol_stack = list(symbol_stack)
        self.remaining_input = list(remaining_input)
        self.label = label
        self.explanation = explanation
        self.forest = list(forest)
        self.status = status
        self.error = error

    @property
    def is_error(self):
        return self.status == 'Error'

    def to_dict(self):
        return {
            'step': self.step,
            'action': str(self.action) if self.action else None,
            'stack': self.state_stack,
            'symbols': self.symbol_stack,
            'input': self.remaining_input,
            'label': self.label,
            'explanation': self.explanation,
            'forest': [n.to_dict() for n in self.forest],
            'status': self.status,
            'error': self.error,
        }

    def __repr__(self):
        return f"ParseStep({self.step}, {self.label!r}, status={self.status!r})"


def tokenize(input_string, terminals):
    """Split input into terminals, longest match first. Unknown characters
    become one-character tokens so the parser can report them."""
    candidates = sorted((t for t in terminals if t not in (END_MARKER, EPSILON)),
                        key=lambda t: (-len(t), t))
    tokens = []
    pos = 0
    while pos < len(input_string):
        if input_string[pos].isspace():
            pos += 1
            continue
        match = next((t for t in candidates if input_string.startswith(t, pos)), None)
        if match is None:
            match = input_string[pos]
        tokens.append(match)
        pos += len(match)
    tokens.append(END_MARKER)
    return tokens


# --- 2. Stack machine ---

class ParseSimulator:
    """Drives the SLR(1) table over a token list, one ParseStep per event."""

    def __init__(self, grammar, table, max_steps=DEFAULT_MAX_STEPS):
        self.grammar = grammar
        self.table = table
        self.max_steps = max_steps

    def _new_node(self, label, children=None, value=None):
        return ParseTreeNode(f"node-{next(self._node_ids)}", label, children, value)

    def _prepare_stacks(self, state_stack, symbol_stack):
        states = list(state_stack) if state_stack else [0]
        symbols = list(symbol_stack) if symbol_stack else [END_MARKER] * len(states)
        if len(symbols) < len(states):
            symbols = [END_MARKER] * (len(states) - len(symbols)) + symbols
        if len(states) < len(symbols):
            states = [0] * (len(symbols) - len(states)) + states

        # resumed symbols get placeholder nodes; the bottom end marker gets none
        nodes = []
        for sym in symbols:
            if sym == END_MARKER:
                nodes.append(None)
            elif sym in self.grammar.non_terminals:
                nodes.append(self._new_node(sym))
            else:
                nodes.append(self._new_node(sym, value=sym))
        return states, symbols, nodes

    def run(self, input_string, state_stack=None, symbol_stack=None):
        self._node_ids = itertools.count()
        tokens = tokenize(input_string, self.grammar.terminals)
        states, symbols, nodes = self._prepare_stacks(state_stack, symbol_stack)
        steps = []
        token_index = 0

        def emit(action, label, explanation, status='Processing', error=None):
            step = ParseStep(len(steps), action, states, symbols, tokens[token_index:],
                             label, explanation, [n for n in nodes if n is not None],
                             status, error)
            steps.append(step)
            return step

        if simulator_log.isEnabledFor(logging.DEBUG):
            simulator_log.debug("tokens=%s stack=%s symbols=%s", tokens, states, symbols)

        try:
            while True:
                if len(steps) >= self.max_steps:
                    emit(None, 'Error',
                         f"Step limit of {self.max_steps} reached before the input was accepted.",
                         'Error', 'step-limit')
                    break

                current_state = states[-1]
                current_token = tokens[token_index]
                if current_token == END_MARKER and token_index != len(tokens) - 1:
                    # a '$' typed in the input is not the end of input
                    action = None
                else:
                    action = self.table.get_action(current_state, current_token)

                if simulator_log.isEnabledFor(logging.DEBUG):
                    simulator_log.debug("{stack: <30} {input: <10} {action}".format(
                        stack=repr(states[-5:]), input=current_token, action=action))

                if action is None:
                    emit(None, 'Error',
                         f"Syntax Error: No action for state {current_state} with token '{current_token}'.",
                         'Error', 'syntax')
                    break

                if action.kind == SHIFT:
                    emit(action, f"Shift S{action.value}",
                         f"Token '{current_token}' found. Shifting to state {action.value}.")
                    value = None if current_token == END_MARKER else current_token
                    nodes.append(self._new_node(current_token, value=value))
                    states.append(action.value)
                    symbols.append(current_token)
                    token_index += 1

                elif action.kind == REDUCE:
                    prod = self.grammar.production(action.value)
                    body = ' '.join(prod.body)
                    emit(action, f"Reduce R{prod.id}: {prod}",
                         f"Rule matches. Reducing {body} to {prod.head}.")

                    if prod.is_epsilon():
                        children = [self._new_node(EPSILON)]
                    else:
                        size = len(prod.body)
                        children = [n for n in nodes[-size:] if n is not None]
                        del states[-size:], symbols[-size:], nodes[-size:]

                    state_before_goto = states[-1]
                    next_state = self.table.get_goto(state_before_goto, prod.head)
                    if next_state is None:
                        emit(None, 'Error',
                             f"Goto Error: No transition for state {state_before_goto} on symbol '{prod.head}'.",
                             'Error', 'goto')
                        break

                    states.append(next_state)
                    symbols.append(prod.head)
                    nodes.append(self._new_node(prod.head, children))
                    emit(None, f"GoTo({prod.head}, {state_before_goto}) = {next_state}",
                         f"Transitioning to state {next_state} after reducing to {prod.head}.")

                elif action.kind == ACCEPT:
                    emit(action, 'Accept', 'The input string has been successfully parsed!', 'Accept')
                    break

                else:
                    raise ValueError(f"Unknown table action {action!r}")

        except Exception as e:
            # any failure still ends the trace with an error step
            simulator_log.exception("Parse simulation failed")
            emit(None, 'Error', f"Runtime Error: {e}", 'Error', 'runtime')

        return steps


def simulate_parsing(input_string, grammar, table, state_stack=None, symbol_stack=None,
                     max_steps=DEFAULT_MAX_STEPS):
    simulator = ParseSimulator(grammar, table, max_steps=max_steps)
    return simulator.run(input_string, state_stack, symbol_stack)


def simulate_parser(grammar_string, input_string, start_symbol=None, max_steps=DEFAULT_MAX_STEPS):
    generator = generate_slr_tables(grammar_string, start_symbol)
    return simulate_parsing(input_string, generator.augmented, generator.table,
                            max_steps=max_steps)
