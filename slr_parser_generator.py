import logging

EPSILON = 'ε'
END_MARKER = '$'

SHIFT = 'shift'
REDUCE = 'reduce'
ACCEPT = 'accept'

SHIFT_REDUCE = 'Shift-Reduce'
REDUCE_REDUCE = 'Reduce-Reduce'

grammar_log = logging.getLogger('slr.grammar')
automaton_log = logging.getLogger('slr.automaton')
table_log = logging.getLogger('slr.table')


## Construction-time failures (bad grammar text, empty grammar...)
class SLRGeneratorError(Exception):
    pass


class EmptyGrammarError(SLRGeneratorError):
    pass


# --- 1. Grammar model ---

class Production:
    """A single rule `head -> body`. Empty bodies are stored as [EPSILON]."""

    def __init__(self, id, head, body):
        self.id = id
        self.head = head
        self.body = list(body) if body else [EPSILON]

    def is_epsilon(self):
        return self.body == [EPSILON]

    def renumbered(self, new_id):
        return Production(new_id, self.head, self.body)

    def __eq__(self, other):
        if not isinstance(other, Production):
            return NotImplemented
        return (self.id == other.id and
                self.head == other.head and
                self.body == other.body)

    def __hash__(self):
        return hash((self.id, self.head, tuple(self.body)))

    def __str__(self):
        return f"{self.head} → {' '.join(self.body)}"

    def __repr__(self):
        return f"Production({self.id}, {self.head!r}, {self.body!r})"


class Grammar:
    """Productions keyed by id, plus the terminal/nonterminal partition.

    `original_start_symbol` is only set on augmented grammars and names the
    start symbol the user wrote.
    """

    def __init__(self, productions, terminals, non_terminals, start_symbol,
                 original_start_symbol=None):
        self.productions = list(productions)
        self.terminals = set(terminals)
        self.non_terminals = set(non_terminals)
        self.start_symbol = start_symbol
        self.original_start_symbol = original_start_symbol
        self._by_id = {p.id: p for p in self.productions}

    @property
    def is_augmented(self):
        return self.original_start_symbol is not None

    def production(self, production_id):
        return self._by_id[production_id]

    def productions_for(self, head):
        return [p for p in self.productions if p.head == head]

    def ordered(self, symbols):
        # Appearance order keeps state numbering stable between runs;
        # python's set order for strings is not.
        seen = []
        for p in self.productions:
            for sym in [p.head, *p.body]:
                if sym in symbols and sym not in seen:
                    seen.append(sym)
        rest = sorted(s for s in symbols if s not in seen and s != END_MARKER)
        ordered = seen + rest
        if END_MARKER in symbols and END_MARKER not in ordered:
            ordered.append(END_MARKER)
        return ordered

    def ordered_terminals(self):
        return self.ordered(self.terminals)

    def ordered_non_terminals(self):
        return self.ordered(self.non_terminals)

    def symbols(self):
        """Every grammar symbol, nonterminals first, in a stable order."""
        return self.ordered_non_terminals() + self.ordered_terminals()

    def __len__(self):
        return len(self.productions)

    def __repr__(self):
        return (f"Grammar(start={self.start_symbol!r}, "
                f"productions={len(self.productions)}, "
                f"terminals={sorted(self.terminals)!r}, "
                f"non_terminals={sorted(self.non_terminals)!r})")


# --- 2. Grammar analysis ---

def augment(grammar):
    """Return a new grammar with `S' -> S` as production 0.

    Original ids are shifted by one. The input grammar is left untouched.
    """
    if not grammar.productions:
        raise EmptyGrammarError("Cannot augment an empty grammar")

    taken = grammar.terminals | grammar.non_terminals | {EPSILON, END_MARKER}
    new_start = f"{grammar.start_symbol}'"
    while new_start in taken:
        new_start += "'"

    productions = [Production(0, new_start, [grammar.start_symbol])]
    productions.extend(p.renumbered(i + 1) for i, p in enumerate(grammar.productions))

    grammar_log.debug("Augmented grammar with %s → %s", new_start, grammar.start_symbol)
    return Grammar(
        productions,
        grammar.terminals,
        grammar.non_terminals | {new_start},
        new_start,
        original_start_symbol=grammar.start_symbol,
    )


class FirstFollowSets:
    def __init__(self, first, follow):
        self.first = first
        self.follow = follow

    def first_of(self, symbols):
        return first_of_sequence(self.first, symbols)

    def __eq__(self, other):
        if not isinstance(other, FirstFollowSets):
            return NotImplemented
        return self.first == other.first and self.follow == other.follow


def first_of_sequence(first, symbols):
    """FIRST of a symbol string. Contains EPSILON iff every symbol is nullable."""
    result = set()
    for symbol in symbols:
        symbol_first = first.get(symbol, {symbol})
        result.update(symbol_first - {EPSILON})
        if EPSILON not in symbol_first:
            return result
    result.add(EPSILON)
    return result


def compute_first_follow(grammar):
    first = {nt: set() for nt in grammar.non_terminals}
    first.update({t: {t} for t in grammar.terminals})
    first[EPSILON] = {EPSILON}
    follow = {nt: set() for nt in grammar.non_terminals}

    changed = True
    while changed:
        changed = False
        for p in grammar.productions:
            old_size = len(first[p.head])
            first[p.head].update(first_of_sequence(first, p.body))
            if len(first[p.head]) != old_size:
                changed = True

    follow[grammar.start_symbol].add(END_MARKER)
    if grammar.original_start_symbol in follow:
        follow[grammar.original_start_symbol].add(END_MARKER)

    changed = True
    while changed:
        changed = False
        for p in grammar.productions:
            for i, B in enumerate(p.body):
                if B not in grammar.non_terminals:
                    continue
                old_size = len(follow[B])
                beta_first = first_of_sequence(first, p.body[i + 1:])
                follow[B].update(beta_first - {EPSILON})
                if EPSILON in beta_first:
                    follow[B].update(follow[p.head])
                if len(follow[B]) != old_size:
                    changed = True

    grammar_log.debug("FIRST: %s", first)
    grammar_log.debug("FOLLOW: %s", follow)
    return FirstFollowSets(first, follow)


# --- 3. LR(0) automaton ---

class LR0Item:
    """An LR(0) item. Equality is by (production id, dot position) only."""

    def __init__(self, production, dot_position):
        self.production = production
        self.dot_position = dot_position

    @property
    def production_id(self):
        return self.production.id

    def is_reducible(self):
        return (self.dot_position == len(self.production.body) or
                self.production.is_epsilon())

    def next_symbol(self):
        if self.is_reducible():
            return None
        return self.production.body[self.dot_position]

    def advance(self):
        return LR0Item(self.production, self.dot_position + 1)

    def sort_key(self):
        return (self.production_id, self.dot_position)

    def __eq__(self, other):
        if not isinstance(other, LR0Item):
            return NotImplemented
        return (self.production_id == other.production_id and
                self.dot_position == other.dot_position)

    def __hash__(self):
        return hash((self.production_id, self.dot_position))

    def __str__(self):
        body = [] if self.production.is_epsilon() else self.production.body
        rendered = [*body[:self.dot_position], '•', *body[self.dot_position:]]
        return f"{self.production.head} → {' '.join(rendered)}"

    def __repr__(self):
        return f"LR0Item({self.production_id}, {self.dot_position})"


class State:
    def __init__(self, id, items):
        self.id = id
        self.items = frozenset(items)
        self.transitions = {}

    def sorted_items(self):
        return sorted(self.items, key=LR0Item.sort_key)

    @property
    def kernel_items(self):
        return [item for item in self.sorted_items()
                if item.dot_position > 0 or item.production_id == 0]

    def __repr__(self):
        return f"State({self.id}, items={len(self.items)}, transitions={self.transitions!r})"


def closure(item_set, grammar):
    closure_set = set(item_set)
    changed = True

    while changed:
        changed = False
        new_items = set()

        for item in closure_set:
            X = item.next_symbol()
            if X not in grammar.non_terminals:
                continue
            for p in grammar.productions_for(X):
                new_item = LR0Item(p, 0)
                if new_item not in closure_set:
                    new_items.add(new_item)

        if new_items:
            closure_set.update(new_items)
            changed = True

    return frozenset(closure_set)


def goto(item_set, symbol, grammar):
    moved = {item.advance() for item in item_set if item.next_symbol() == symbol}
    return closure(moved, grammar) if moved else frozenset()


def build_automaton(grammar):
    """Canonical collection of LR(0) states, numbered in discovery order."""
    I0 = closure({LR0Item(grammar.production(0), 0)}, grammar)

    states = [State(0, I0)]
    state_map = {I0: 0}
    symbols_to_check = [s for s in grammar.symbols() if s not in (END_MARKER, EPSILON)]
    queue = [states[0]]

    while queue:
        current = queue.pop(0)

        for X in symbols_to_check:
            next_items = goto(current.items, X, grammar)
            if not next_items:
                continue

            if next_items not in state_map:
                new_state = State(len(states), next_items)
                states.append(new_state)
                state_map[next_items] = new_state.id
                queue.append(new_state)

            current.transitions[X] = state_map[next_items]

    automaton_log.info("Built LR(0) automaton with %d states", len(states))
    return states


# --- 4. SLR(1) table ---

class Action:
    """Shift(target) | Reduce(production id) | Accept."""

    def __init__(self, kind, value=None):
        self.kind = kind
        self.value = value

    @classmethod
    def shift(cls, target):
        return cls(SHIFT, target)

    @classmethod
    def reduce(cls, production_id):
        return cls(REDUCE, production_id)

    @classmethod
    def accept(cls):
        return cls(ACCEPT)

    def __eq__(self, other):
        if not isinstance(other, Action):
            return NotImplemented
        return self.kind == other.kind and self.value == other.value

    def __hash__(self):
        return hash((self.kind, self.value))

    def __str__(self):
        if self.kind == SHIFT:
            return f"s{self.value}"
        if self.kind == REDUCE:
            return f"r{self.value}"
        return 'acc'

    def __repr__(self):
        return f"Action({self.kind!r}, {self.value!r})"


class Conflict:
    def __init__(self, state, symbol, kind, existing, candidate):
        self.state = state
        self.symbol = symbol
        self.kind = kind
        self.existing = existing
        self.candidate = candidate

    def to_dict(self):
        return {
            'state': self.state,
            'symbol': self.symbol,
            'type': self.kind,
            'existing': str(self.existing),
            'candidate': str(self.candidate),
        }

    def __str__(self):
        return (f"{self.kind} conflict in state I{self.state} on '{self.symbol}' "
                f"(kept {self.existing}, dropped {self.candidate})")

    def __repr__(self):
        return f"Conflict({self.state}, {self.symbol!r}, {self.kind!r}, {self.existing!r}, {self.candidate!r})"


class ParsingTable:
    def __init__(self, action, goto, terminals, non_terminals, conflicts):
        self.action = action
        self.goto = goto
        self.terminals = terminals
        self.non_terminals = non_terminals
        self.conflicts = conflicts

    def get_action(self, state, token):
        return self.action.get(state, {}).get(token)

    def get_goto(self, state, non_terminal):
        return self.goto.get(state, {}).get(non_terminal)

    @property
    def is_slr1(self):
        return not self.conflicts

    def conflict_report(self):
        return [str(c) for c in self.conflicts]


def _conflict_kind(existing):
    return SHIFT_REDUCE if existing.kind == SHIFT else REDUCE_REDUCE


def build_table(grammar, states, first_follow):
    action = {}
    goto_table = {}
    conflicts = []
    logged = set()

    def record(conflict):
        conflicts.append(conflict)
        table_log.warning("%s", conflict)

    for state in states:
        action[state.id] = {}
        goto_table[state.id] = {}

        # shifts and gotos come straight from the automaton
        for symbol, target in state.transitions.items():
            if symbol in grammar.terminals:
                action[state.id][symbol] = Action.shift(target)
            elif symbol in grammar.non_terminals:
                goto_table[state.id][symbol] = target

        for item in state.sorted_items():
            if not item.is_reducible():
                continue
            prod = item.production

            if prod.head == grammar.start_symbol:
                existing = action[state.id].get(END_MARKER)
                if existing is not None and existing.kind != ACCEPT:
                    record(Conflict(state.id, END_MARKER, _conflict_kind(existing),
                                    existing, Action.accept()))
                # accept is the one write allowed to replace an earlier one
                action[state.id][END_MARKER] = Action.accept()
                continue

            candidate = Action.reduce(prod.id)
            for terminal in grammar.ordered(first_follow.follow.get(prod.head, set())):
                existing = action[state.id].get(terminal)
                if existing is None:
                    action[state.id][terminal] = candidate
                    continue
                if existing == candidate:
                    continue
                kind = _conflict_kind(existing)
                key = (state.id, terminal, kind, prod.id)
                if key not in logged:
                    logged.add(key)
                    record(Conflict(state.id, terminal, kind, existing, candidate))

    non_terminals = [nt for nt in grammar.ordered_non_terminals() if nt != grammar.start_symbol]
    table_log.info("Built SLR(1) table: %d states, %d conflicts", len(states), len(conflicts))
    return ParsingTable(action, goto_table, grammar.ordered_terminals(),
                        non_terminals, conflicts)


# --- 5. Whole pipeline ---

class SLRGenerator:
    """Runs augmentation, FIRST/FOLLOW, automaton and table for one grammar."""

    def __init__(self, grammar):
        self.grammar = grammar
        self.augmented = augment(grammar)
        self.first_follow = compute_first_follow(self.augmented)
        self.states = build_automaton(self.augmented)
        self.table = build_table(self.augmented, self.states, self.first_follow)

    def closure_table(self):
        return {state.id: [str(item) for item in state.sorted_items()] for state in self.states}


def generate_slr_tables(grammar_string, start_symbol=None):
    from grammar_reader import parse_grammar
    return SLRGenerator(parse_grammar(grammar_string, start_symbol))
