import pytest

from uicheck.core.errors import ScriptSyntaxError
from uicheck.runner.scanner import DEFAULT_WORD_CHARS, Scanner, ScannerOptions, tokenize
from uicheck.runner.tokens import TokenKind

N, W, S, E = TokenKind.NUMBER, TokenKind.WORD, TokenKind.SYMBOL, TokenKind.END

# tabs and trailing spaces are significant
SCRIPT = (
    "\n"
    "L2 hello world\n"
    "L3 /* 1000 1.2 */ \n"
    "L4 -1000 -01.20 \n"
    "L5\t100,100 \n"
    "L6\tabc\"123\" /* humm */\n"
    "L7\tabc\"\"123 /* abc123 */\n"
    "L8\t123abc /* is a string */\n"
    "\tabc123 /* is a string */\n"
    "\tabc-123 /* is a string */\n"
    "\t// ignore this line\n"
    "\t\"hello,there\"\n"
    "\t/* hello */\n"
    "\t'hello,there'\n"
    "\thello.there\n"
    "\t''\n"
    "\t\"'\"\n"
    "\t'\"'\n"
    "\t/* hello */\n"
)


def _summary(tokens):
    return [(t.kind, t.value, t.line, t.quote, t.lws) for t in tokens]


def test_scanner_classifies_tokens_and_tracks_lines():
    options = ScannerOptions(word_chars=DEFAULT_WORD_CHARS | {"."})
    assert _summary(tokenize(SCRIPT, options)) == [
        (W, "L2", 2, "", "\n"),
        (W, "hello", 2, "", " "),
        (W, "world", 2, "", " "),
        (W, "L3", 3, "", "\n"),
        (W, "L4", 4, "", "  \n"),
        (N, -1000, 4, "", " "),
        (N, -1.2, 4, "", " "),
        (W, "L5", 5, "", " \n"),
        (N, 100, 5, "", "\t"),
        (S, ",", 5, "", ""),
        (N, 100, 5, "", ""),
        (W, "L6", 6, "", " \n"),
        (W, "abc123", 6, '"', "\t"),
        (W, "L7", 7, "", " \n"),
        (W, "abc123", 7, '"', "\t"),
        (W, "L8", 8, "", " \n"),
        (W, "123abc", 8, "", "\t"),
        (W, "abc123", 9, "", " \n\t"),
        (W, "abc-123", 10, "", " \n\t"),
        (W, "hello,there", 12, '"', " \n\t\n\t"),
        (W, "hello,there", 14, "'", "\n\t\n\t"),
        (W, "hello.there", 15, "", "\n\t"),
        (W, "", 16, "'", "\n\t"),
        (W, "'", 17, '"', "\n\t"),
        (W, '"', 18, "'", "\n\t"),
        (E, "", 20, "", "\n\t\n"),
    ]


def test_dot_splits_words_with_default_word_chars():
    assert [t.value for t in tokenize("hello.there")][:3] == ["hello", ".", "there"]


def test_number_comma_number_across_lines():
    tokens = tokenize("at 10,20\nsize\n  3.5,-4")
    assert _summary(tokens)[1:4] == [(N, 10, 1, "", " "), (S, ",", 1, "", ""), (N, 20, 1, "", "")]
    assert [(t.kind, t.value, t.line) for t in tokens[5:8]] == [(N, 3.5, 3), (S, ",", 3), (N, -4, 3)]


def test_minus_only_starts_a_number_at_token_start():
    tokens = tokenize("--onfail a-1 -x")
    assert [(t.kind, t.value) for t in tokens[:-1]] == [(W, "--onfail"), (W, "a-1"), (W, "-x")]


def test_symbols_are_single_characters():
    tokens = tokenize("f(a){}")
    assert [t.value for t in tokens if t.kind is S] == ["(", ")", "{", "}"]


def test_escaped_quote_inside_string():
    (token, end) = tokenize(r'"say \"hi\" \\ now\n"')
    assert token.value == 'say "hi" \\ now\\n'
    assert token.quote == '"'
    assert end.is_end


def test_block_comment_counts_embedded_newlines():
    tokens = tokenize("a /* one\ntwo\nthree */ b")
    assert [(t.value, t.line) for t in tokens[:2]] == [("a", 1), ("b", 3)]


def test_stream_ends_with_exactly_one_end():
    tokens = tokenize("")
    assert len(tokens) == 1 and tokens[0].is_end
    scanner = Scanner("x")
    scanner.next()
    assert scanner.next().is_end
    assert scanner.next().is_end


def test_peek_does_not_consume():
    scanner = Scanner("a b")
    assert scanner.peek().value == "a"
    assert scanner.peek().value == "a"
    assert scanner.next().value == "a"
    assert scanner.next().value == "b"


def test_joining_lws_and_raw_reproduces_source_without_comments():
    source = 'echo "a b" /* c */ 12,x // tail\nclick\n'
    tokens = tokenize(source)
    assert "".join(t.lws + t.raw for t in tokens) == 'echo "a b"  12,x \nclick\n'


@pytest.mark.parametrize("source", ['echo "never closed', "a /* never closed"])
def test_unterminated_input_is_a_syntax_error(source):
    with pytest.raises(ScriptSyntaxError, match="unterminated"):
        tokenize(source)


def test_comments_can_be_disabled():
    options = ScannerOptions(slash_slash_comments=False)
    values = [t.value for t in tokenize("a // b", options)]
    assert values[:4] == ["a", "/", "/", "b"]
