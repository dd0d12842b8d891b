import sys

import pytest

from tinyfn import run
from tinyfn.tinyfn_errors import EvalError, LexError, ParseError
from tinyfn.tinyfn_interpreter import Interpreter
from tinyfn.tinyfn_runtime import ScriptRunner, StdLib, TinyfnHost, tinyfn_api_method


def assert_ok(res, expected=None):
    assert res.status == "success", f"expected success, got:\n{res.format_error()}"
    if expected is not None:
        assert res.value == expected, f"expected {expected!r}, got {res.value!r}"
    return res


@pytest.fixture
def runner():
    return ScriptRunner()


# --- Standard library ---

@pytest.mark.parametrize("src, expected", [
    ("1 + 2;", 3),
    ("'a' + 'b';", "ab"),
    ("7 - 2;", 5),
    ("3 * 4;", 12),
    ("7 / 2;", 3.5),
    ("1 < 2;", True),
    ("2 <= 2;", True),
    ("1 > 2;", False),
    ("2 >= 3;", False),
    ("1 == 1;", True),
    ("'a' != 'b';", True),
    ("add(2, 3);", 5),
])
def test_operators(runner, src, expected):
    res = assert_ok(runner.handle_script(src))
    assert res.value == expected
    assert type(res.value) is type(expected)


def test_equality_distinguishes_booleans_from_numbers(runner):
    assert assert_ok(runner.handle_script("true == 1;")).value is False
    assert assert_ok(runner.handle_script("false != 0;")).value is True


def test_if_calls_exactly_one_branch(runner):
    src = """
    hits = [];
    r = if(1 < 2, () => { push(hits, "then"); "yes"; }, () => { push(hits, "else"); "no"; });
    """
    assert_ok(runner.handle_script(src), "yes")
    assert runner.root_scope["hits"] == ["then"]
    assert_ok(runner.handle_script("if(false, () => 1, () => 2);"), 2)
    assert runner.handle_script("if(false, () => 1);").value is None


def test_print_records_stdout_side_effects(runner):
    res = assert_ok(runner.handle_script("print('hi', 1, [1, 'a'], none_here); 5;"), 5)
    assert res.output == ['hi 1 [1, "a"] none']
    assert res.side_effects == [{"topics": ["stdout"], "message": 'hi 1 [1, "a"] none'}]


def test_print_returns_none(runner):
    assert runner.handle_script("print(1);").value is None


def test_array_helpers(runner):
    assert_ok(runner.handle_script("xs = [1, 2]; push(xs, 3);"), [1, 2, 3])
    assert_ok(runner.handle_script("pop(xs);"), 3)
    assert runner.handle_script("pop([]);").value is None
    assert_ok(runner.handle_script("get(xs, 1);"), 2)
    assert runner.handle_script("get(xs, 5);").value is None
    assert_ok(runner.handle_script("len(xs);"), 2)
    assert_ok(runner.handle_script("range(3);"), [0, 1, 2])
    assert_ok(runner.handle_script("range(1, 7, 2);"), [1, 3, 5])


def test_each_passes_item_and_index(runner):
    src = """
    acc = [];
    each(["a", "b"], (v, i) => push(acc, [i, v]));
    acc;
    """
    assert_ok(runner.handle_script(src), [[0, "a"], [1, "b"]])


def test_object_helpers(runner):
    src = """
    o = object();
    set(o, "name", "tiny");
    [get(o, "name"), get(o, "missing"), keys(o)];
    """
    assert_ok(runner.handle_script(src), ["tiny", None, ["name"]])


def test_bad_get_is_an_eval_error(runner):
    res = runner.handle_script("get(1, 2);")
    assert isinstance(res.error, EvalError)
    assert "TypeError" in res.error.message


def test_stdlib_bindings_include_operator_aliases():
    lib = StdLib(Interpreter())
    names = lib.bindings()
    for name in ("print", "if", "push", "pop", "get", "each", "range",
                 "+", "-", "*", "/", "<", "<=", ">", ">=", "==", "!="):
        assert name in names
    assert names["+"] == names["add"]


# --- Runner ---

def test_root_bindings_persist_between_scripts(runner):
    assert_ok(runner.handle_script("x = 41;"))
    assert_ok(runner.handle_script("x + 1;"), 42)


def test_side_effects_are_per_run(runner):
    first = runner.handle_script("print(1);")
    second = runner.handle_script("print(2);")
    assert first.output == ["1"]
    assert second.output == ["2"]


@pytest.mark.parametrize("src, error_type", [
    ("x = @;", LexError),
    ("x = ;", ParseError),
    ("nope();", EvalError),
])
def test_errors_become_error_results(runner, src, error_type):
    res = runner.handle_script(src)
    assert res.status == "error"
    assert isinstance(res.error, error_type)
    assert res.error_message == res.error.format()
    assert res.format_error() == res.error.format()
    assert res.side_effects[-1] == {"topics": ["stderr"], "message": res.error_message}


def test_format_error_shape(runner):
    res = runner.handle_script("a = 1;\nb = a(2);")
    assert res.format_error().splitlines() == [
        "EvalError: 'a' is not callable (integer)",
        "line 2: b = a(2);",
        " " * len("line 2: ") + "    ^^^^",
    ]


def test_format_error_on_success_is_empty(runner):
    assert runner.handle_script("1;").format_error() == ""


def test_internal_errors_propagate(runner, monkeypatch):
    def broken(self, node, env):
        raise RuntimeError("broken evaluator")
    monkeypatch.setattr(Interpreter, "evaluate", broken)
    with pytest.raises(RuntimeError):
        runner.handle_script("1;")


def test_explicit_bindings_shadow_stdlib():
    seen = []
    runner = ScriptRunner(bindings={"print": seen.append, "answer": 42})
    assert_ok(runner.handle_script("print(answer);"))
    assert seen == [42]


def test_without_stdlib_nothing_is_bound():
    runner = ScriptRunner(load_stdlib=False)
    res = runner.handle_script("1 + 2;")
    assert res.status == "error"
    assert "'+' is not callable" in res.error.message


def test_debug_records_tokens_and_ast():
    runner = ScriptRunner(debug=True)
    res = assert_ok(runner.handle_script("x = 1;"))
    debug = [e["message"] for e in res.side_effects if e["topics"] == ["debug"]]
    assert debug[0].startswith("tokens:\n")
    assert "kind: identifier" in debug[0]
    assert debug[1].startswith("ast:\n")
    assert "type: Assignment" in debug[1]


def test_run_returns_value_or_raises():
    assert run("x = 2; x * 21;") == 42
    assert run("answer;", bindings={"answer": 7}) == 7
    with pytest.raises(ParseError):
        run("x = 1")


# --- Host binding ---

class Game(TinyfnHost):
    def __init__(self):
        self.hp = 100

    @tinyfn_api_method
    def damage(self, amount):
        self.hp -= amount
        return self.hp

    def secret(self):
        return "hidden"


def test_host_api_methods_are_bound_by_name():
    host = Game()
    runner = ScriptRunner(host_object=host)
    assert_ok(runner.handle_script("damage(5); damage(10);"), 85)
    assert host.hp == 85


def test_undecorated_host_methods_are_not_bound():
    runner = ScriptRunner(host_object=Game())
    res = runner.handle_script("secret();")
    assert res.status == "error"
    assert "'secret' is not callable" in res.error.message


def test_host_methods_can_call_back_into_closures():
    class Hooks(TinyfnHost):
        @tinyfn_api_method
        def twice(self, fn):
            return [fn(1), fn(2)]

    runner = ScriptRunner(host_object=Hooks())
    assert_ok(runner.handle_script("twice((n) => n * 10);"), [10, 20])


# --- include ---

def test_include_binds_into_includer_scope(tmp_path):
    (tmp_path / "lib.tf").write_text("double = (x) => x * 2;\nbase = 10;\n", encoding="utf-8")
    runner = ScriptRunner()
    runner.source_dir = str(tmp_path)
    res = assert_ok(runner.handle_script('v = include("lib.tf"); print(double(base));'))
    assert res.output == ["20"]
    assert runner.root_scope["v"] == 10


def test_include_inside_function_binds_into_working_frame(tmp_path):
    (tmp_path / "lib.tf").write_text("helper = 1;", encoding="utf-8")
    runner = ScriptRunner()
    runner.source_dir = str(tmp_path)
    src = """
    load = () => { include("lib.tf"); helper + 1; };
    r = load();
    """
    assert_ok(runner.handle_script(src), 2)
    # The include ran in load's working frame, which then committed.
    assert runner.root_scope["helper"] == 1


def test_nested_include_resolves_relative_to_including_file(tmp_path):
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "a.tf").write_text('include("b.tf"); a = b + 1;', encoding="utf-8")
    (sub / "b.tf").write_text("b = 1;", encoding="utf-8")
    runner = ScriptRunner()
    runner.source_dir = str(tmp_path)
    assert_ok(runner.handle_script('include("sub/a.tf"); [a, b];'), [2, 1])


def test_handle_file_resolves_includes_next_to_the_script(tmp_path):
    (tmp_path / "lib.tf").write_text("z = 3;", encoding="utf-8")
    main = tmp_path / "main.tf"
    main.write_text('include("lib.tf"); z;', encoding="utf-8")
    assert_ok(ScriptRunner().handle_file(str(main)), 3)


def test_include_missing_file(tmp_path):
    runner = ScriptRunner()
    runner.source_dir = str(tmp_path)
    res = runner.handle_script('include("missing.tf");')
    assert isinstance(res.error, EvalError)
    assert res.error.message.startswith("Failed to include 'missing.tf'")
    assert res.error.location.text == 'include("missing.tf")'
    assert isinstance(res.error.__cause__, OSError)


def test_include_parse_failure_names_the_file_and_position(tmp_path):
    (tmp_path / "bad.tf").write_text("x = ;", encoding="utf-8")
    runner = ScriptRunner()
    runner.source_dir = str(tmp_path)
    res = runner.handle_script('\ninclude("bad.tf");')
    assert isinstance(res.error, EvalError)
    assert "ParseError at bad.tf:1:5" in res.error.message
    assert isinstance(res.error.__cause__, ParseError)
    assert res.error.location.line == 2


def test_include_requires_a_path_string(runner):
    res = runner.handle_script("include(1);")
    assert isinstance(res.error, EvalError)
    assert "path" in res.error.message


def test_self_include_is_an_eval_error(tmp_path):
    (tmp_path / "loop.tf").write_text('include("loop.tf");', encoding="utf-8")
    runner = ScriptRunner()
    runner.source_dir = str(tmp_path)
    res = runner.handle_script('include("loop.tf");')
    assert isinstance(res.error, EvalError)
    assert res.error.message.startswith("Failed to include 'loop.tf'")
    # The stack runs out either while reading and evaluating or while parsing.
    assert "recursion" in res.error.message or "nested too deeply" in res.error.message


def test_include_path_with_nul_is_an_eval_error(tmp_path):
    runner = ScriptRunner()
    runner.source_dir = str(tmp_path)
    res = runner.handle_script('include("a\\0b");')
    assert res.status == "error"
    assert isinstance(res.error, EvalError)
    assert res.error.message.startswith("Failed to include 'a\0b'")
    assert isinstance(res.error.__cause__, ValueError)


# --- Deep nesting ---

@pytest.mark.parametrize("make_src", [
    lambda n: "1 + " * n + "1;",
    lambda n: "[" * n + "]" * n + ";",
])
def test_deeply_nested_input_is_an_error_result(runner, make_src):
    res = runner.handle_script(make_src(sys.getrecursionlimit() * 2))
    assert res.status == "error"
    assert isinstance(res.error, ParseError)
    assert res.error.message == "Input nested too deeply"
    assert res.format_error().startswith("ParseError: Input nested too deeply\nline 1: ")


def test_deeply_nested_include_is_wrapped(tmp_path):
    depth = sys.getrecursionlimit() * 2
    (tmp_path / "deep.tf").write_text("[" * depth + "]" * depth + ";", encoding="utf-8")
    runner = ScriptRunner()
    runner.source_dir = str(tmp_path)
    res = runner.handle_script('include("deep.tf");')
    assert isinstance(res.error, EvalError)
    assert "ParseError at deep.tf:1:" in res.error.message
    assert "Input nested too deeply" in res.error.message
