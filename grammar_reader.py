import logging
import re

from slr_parser_generator import (
    END_MARKER,
    EPSILON,
    Grammar,
    Production,
    SLRGeneratorError,
)

reader_log = logging.getLogger('slr.reader')

ARROW_RE = re.compile(r'->|→|::=')
# split on whitespace, and keep punctuation as its own token
BODY_SPLIT_RE = re.compile(r'(\s+|[{}:;(),])')


class GrammarSyntaxError(SLRGeneratorError):
    def __init__(self, message, line=None):
        super().__init__(message)
        self.line = line


def is_epsilon(symbol):
    return symbol == EPSILON or symbol.lower() == 'epsilon' or symbol == "''"


def _read_head(line):
    parts = ARROW_RE.split(line, maxsplit=1)
    if len(parts) != 2:
        raise GrammarSyntaxError(f"Invalid grammar format (missing '->'): {line}", line)
    head_part, body_part = parts[0].strip(), parts[1]
    if not head_part:
        raise GrammarSyntaxError(f"Non-terminal cannot be empty in rule: {line}", line)
    if len(head_part.split()) != 1:
        raise GrammarSyntaxError(f"Rule head must be a single non-terminal: {line}", line)
    head = head_part
    if head == END_MARKER or is_epsilon(head):
        raise GrammarSyntaxError(f"Invalid non-terminal '{head_part}' in rule: {line}", line)
    return head, body_part


def _split_body(body_str, line):
    tokens = [t.strip() for t in BODY_SPLIT_RE.split(body_str)]
    symbols = [t for t in tokens if t]
    if END_MARKER in symbols:
        raise GrammarSyntaxError(f"'{END_MARKER}' is reserved for end of input in rule: {line}", line)

    # ε next to real symbols contributes nothing
    non_empty = [s for s in symbols if not is_epsilon(s)]
    return non_empty or [EPSILON]


def parse_grammar(text, start_symbol=None):
    """Read `A -> x B | ε` style rules, one head per line, into a Grammar."""
    lines = [line.strip() for line in text.split('\n') if line.strip()]

    rules = []
    for line in lines:
        rules.append(_read_head(line) + (line,))
    non_terminals = {head for head, _, _ in rules}

    productions = []
    terminals = set()
    for head, body_part, line in rules:
        for alternative in body_part.split('|'):
            body = _split_body(alternative, line)
            productions.append(Production(len(productions), head, body))
            terminals.update(s for s in body if s not in non_terminals and s != EPSILON)

    if not productions:
        raise GrammarSyntaxError("No valid grammar rules found")

    if start_symbol:
        if start_symbol not in non_terminals:
            raise GrammarSyntaxError(f"Start symbol '{start_symbol}' has no productions")
    else:
        start_symbol = productions[0].head

    terminals.add(END_MARKER)
    reader_log.debug("Read %d productions, start symbol %s", len(productions), start_symbol)
    return Grammar(productions, terminals, non_terminals, start_symbol)
