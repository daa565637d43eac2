from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from grammar_reader import parse_grammar
from slr_parser_generator import SLRGenerator, SLRGeneratorError, EPSILON
from slr_simulator import DEFAULT_MAX_STEPS, simulate_parsing, tokenize

# Initialize the Flask application
app = Flask(__name__)
CORS(app)

# Configuration
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024  # 16KB max request size
app.json.sort_keys = False  # Preserve table order in JSON responses
app.config['MAX_PARSE_STEPS'] = DEFAULT_MAX_STEPS
app.config.from_prefixed_env('SLR')


# --- UTILITY FUNCTIONS ---
def _start_symbol(data):
    start_symbol = data.get('startSymbol', None)
    if start_symbol is not None:
        start_symbol = start_symbol.strip() or None
    return start_symbol


def validate_grammar_input(data):
    """Validate grammar input from request."""
    if not data:
        return None, "No JSON data provided"

    grammar_text = data.get('grammarText', '').strip()
    if not grammar_text:
        return None, "Grammar text is empty or missing"

    return {'grammar': grammar_text, 'start': _start_symbol(data)}, None


def validate_parse_input(data):
    """Validate grammar + input string from request."""
    validated, error = validate_grammar_input(data)
    if error:
        return None, error

    input_string = data.get('inputString')
    if input_string is None:
        return None, "Input string is missing"
    validated['input'] = input_string

    max_steps = data.get('maxSteps', app.config['MAX_PARSE_STEPS'])
    if not isinstance(max_steps, int) or isinstance(max_steps, bool) or max_steps < 1:
        return None, "maxSteps must be a positive integer"
    validated['max_steps'] = max_steps

    state_stack = data.get('stateStack')
    if state_stack is not None and not (
            isinstance(state_stack, list) and
            all(isinstance(s, int) and not isinstance(s, bool) and s >= 0 for s in state_stack)):
        return None, "stateStack must be a list of state numbers"
    symbol_stack = data.get('symbolStack')
    if symbol_stack is not None and not (
            isinstance(symbol_stack, list) and all(isinstance(s, str) for s in symbol_stack)):
        return None, "symbolStack must be a list of symbols"
    validated['state_stack'] = state_stack
    validated['symbol_stack'] = symbol_stack

    return validated, None


def error_response(message, status=400, error_type=None):
    body = {"success": False, "error": message}
    if error_type:
        body["errorType"] = error_type
    return jsonify(body), status


def format_table_for_json(table):
    """Convert action table with int keys to string keys, cells as s3/r2/acc."""
    return {
        str(state): {symbol: str(entry) for symbol, entry in row.items()}
        for state, row in table.items()
    }


def format_goto_for_json(goto_table):
    """String state keys; goto targets stay ints like state transitions."""
    return {str(state): dict(row) for state, row in goto_table.items()}


def format_sets(sets):
    return {symbol: sorted(values) for symbol, values in sets.items() if symbol != EPSILON}


def format_states(states):
    formatted = []
    for state in states:
        kernel = set(state.kernel_items)
        formatted.append({
            'id': state.id,
            'items': [str(item) for item in state.sorted_items()],
            'kernel': [str(item) for item in state.sorted_items() if item in kernel],
            'closure': [str(item) for item in state.sorted_items() if item not in kernel],
            'transitions': dict(state.transitions),
        })
    return formatted


def format_generator(generator):
    grammar = generator.augmented
    table = generator.table
    return {
        "productions": [
            {'id': p.id, 'head': p.head, 'body': p.body, 'text': str(p)}
            for p in grammar.productions
        ],
        "terminals": table.terminals,
        "nonTerminals": table.non_terminals,
        "startSymbol": grammar.original_start_symbol,
        "augmentedStart": grammar.start_symbol,
        "first": format_sets({s: generator.first_follow.first[s] for s in grammar.non_terminals}),
        "follow": format_sets(generator.first_follow.follow),
        "states": format_states(generator.states),
        "numStates": len(generator.states),
        "actionTable": format_table_for_json(table.action),
        "gotoTable": format_goto_for_json(table.goto),
        "conflicts": [c.to_dict() for c in table.conflicts],
        "conflictReport": table.conflict_report(),
        "isSLR1": table.is_slr1,
    }


# --- ROOT ENDPOINT ---
@app.route('/', methods=['GET'])
def index():
    """API health check and information."""
    return jsonify({
        "status": "online",
        "service": "SLR(1) Parser Generator API",
        "version": "1.0",
        "endpoints": {
            "generate_tables": {
                "path": "/api/generate-tables",
                "method": "POST",
                "description": "Build the LR(0) automaton and SLR(1) tables for a grammar"
            },
            "parse_input": {
                "path": "/api/parse-input",
                "method": "POST",
                "description": "Simulate the shift-reduce parse of an input string"
            },
            "validate_grammar": {
                "path": "/api/validate-grammar",
                "method": "POST",
                "description": "Check grammar syntax only"
            },
            "health": {
                "path": "/api/health",
                "method": "GET",
                "description": "API health check"
            }
        }
    }), 200


@app.route('/api/health', methods=['GET'])
def health_check():
    return jsonify({"status": "healthy", "service": "SLR(1) Parser Generator"}), 200


@app.route('/api/generate-tables', methods=['POST'])
def generate_tables_api():
    """
    Receives grammar input, builds the SLR(1) tables, and returns them as JSON.

    Expected JSON payload:
    {
        "grammarText": "E -> E + T | T\nT -> id",
        "startSymbol": "E"  (optional, first rule's head if not provided)
    }

    Conflicts do not fail the request; they are listed under "conflicts"
    and "isSLR1" is false.
    """
    if not request.is_json:
        return error_response("Content-Type must be application/json")

    validated, error = validate_grammar_input(request.get_json(silent=True))
    if error:
        return error_response(error)

    try:
        grammar = parse_grammar(validated['grammar'], validated['start'])
        generator = SLRGenerator(grammar)
    except SLRGeneratorError as e:
        return error_response(str(e), 400, "GrammarError")
    except ValueError as e:
        return error_response(f"Invalid input: {e}", 400, "ValueError")

    if generator.table.conflicts:
        app.logger.info("Grammar is not SLR(1): %d conflicts", len(generator.table.conflicts))

    return jsonify({"success": True, "data": format_generator(generator)}), 200


@app.route('/api/parse-input', methods=['POST'])
def parse_input_api():
    """
    Receives grammar and input string, runs the shift-reduce simulation,
    and returns the step-by-step trace.

    Expected JSON payload:
    {
        "grammarText": "E -> E + T | T\nT -> id",
        "inputString": "id + id",
        "startSymbol": "E",  (optional)
        "maxSteps": 500,     (optional)
        "stateStack": [0, 5],          (optional, resume from a captured step)
        "symbolStack": ["$", "id"]    (optional)
    }

    Syntax errors are reported in the last trace step, not as HTTP errors.
    """
    if not request.is_json:
        return error_response("Content-Type must be application/json")

    validated, error = validate_parse_input(request.get_json(silent=True))
    if error:
        return error_response(error)

    try:
        grammar = parse_grammar(validated['grammar'], validated['start'])
        generator = SLRGenerator(grammar)
    except SLRGeneratorError as e:
        return error_response(str(e), 400, "GrammarError")

    trace = simulate_parsing(validated['input'], generator.augmented, generator.table,
                             state_stack=validated['state_stack'],
                             symbol_stack=validated['symbol_stack'],
                             max_steps=validated['max_steps'])
    final_step = trace[-1]

    return jsonify({
        "success": True,
        "data": {
            "trace": [step.to_dict() for step in trace],
            "result": final_step.status,
            "steps": len(trace),
            "tokens": tokenize(validated['input'], generator.augmented.terminals),
            "accepted": final_step.status == 'Accept',
            "hasErrors": final_step.is_error,
            "conflicts": [c.to_dict() for c in generator.table.conflicts],
        }
    }), 200


@app.route('/api/validate-grammar', methods=['POST'])
def validate_grammar_api():
    """Reads the grammar without building tables."""
    if not request.is_json:
        return error_response("Content-Type must be application/json")

    validated, error = validate_grammar_input(request.get_json(silent=True))
    if error:
        return jsonify({"success": False, "valid": False, "error": error}), 400

    try:
        grammar = parse_grammar(validated['grammar'], validated['start'])
    except SLRGeneratorError as e:
        return jsonify({
            "success": False,
            "valid": False,
            "error": str(e),
            "errorType": "GrammarError"
        }), 400

    return jsonify({
        "success": True,
        "valid": True,
        "message": "Grammar syntax is valid",
        "startSymbol": grammar.start_symbol,
        "rules": len(grammar.productions),
        "terminals": len(grammar.terminals),
        "nonTerminals": len(grammar.non_terminals)
    }), 200


# --- ERROR HANDLERS ---
@app.errorhandler(404)
def not_found(error):
    return jsonify({
        "success": False,
        "error": "Endpoint not found",
        "availableEndpoints": ["/api/generate-tables", "/api/parse-input",
                               "/api/validate-grammar", "/api/health"]
    }), 404


@app.errorhandler(405)
def method_not_allowed(error):
    return error_response("Method not allowed. Check API documentation for correct HTTP method.", 405)


@app.errorhandler(413)
def request_entity_too_large(error):
    return error_response("Request payload too large", 413)


@app.errorhandler(Exception)
def handle_exception(error):
    """Global exception handler."""
    if isinstance(error, HTTPException):
        return error_response(error.description, error.code)
    app.logger.exception("Unhandled exception: %s", error)
    return error_response("An unexpected error occurred", 500, "InternalError")


if __name__ == '__main__':
    app.run(debug=True, host='127.0.0.1', port=5000)
