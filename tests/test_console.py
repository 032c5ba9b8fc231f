import io
from concurrent.futures import ThreadPoolExecutor

from xvfs.console import INPUT_BUF, Console


def _console():
    out = io.StringIO()
    return Console(out), out


def test_line_is_echoed_and_read():
    con, out = _console()
    con.intr("abc\n")
    assert con.read(10) == b"abc\n"
    assert out.getvalue() == "abc\n"


def test_read_stops_at_newline():
    con, _ = _console()
    con.intr("ab\ncd\n")
    assert con.read(100) == b"ab\n"
    assert con.read(100) == b"cd\n"


def test_short_read_leaves_rest():
    con, _ = _console()
    con.intr("abcdef\n")
    assert con.read(3) == b"abc"
    assert con.read(10) == b"def\n"


def test_backspace_erases():
    con, out = _console()
    con.intr("abx\x7fc\n")
    assert con.read(10) == b"abc\n"
    assert "\b \b" in out.getvalue()


def test_backspace_on_empty_line_does_nothing():
    con, out = _console()
    con.intr("\x08\n")
    assert con.read(10) == b"\n"
    assert out.getvalue() == "\n"


def test_kill_line():
    con, out = _console()
    con.intr("abc\x15xy\n")
    assert con.read(10) == b"xy\n"
    assert out.getvalue().count("\b \b") == 3


def test_carriage_return_becomes_newline():
    con, _ = _console()
    con.intr("hi\r")
    assert con.read(10) == b"hi\n"


def test_ctrl_d_is_end_of_file():
    con, _ = _console()
    con.intr("ab\x04")
    assert con.read(10) == b"ab"
    assert con.read(10) == b""


def test_procdump_requested():
    calls = []
    con = Console(io.StringIO(), procdump=lambda: calls.append(True))
    con.intr("\x10")
    assert calls == [True]


def test_full_buffer_commits():
    con, _ = _console()
    con.intr("a" * (INPUT_BUF + 50))
    assert con.read(INPUT_BUF) == b"a" * INPUT_BUF


def test_write_echoes():
    con, out = _console()
    assert con.write(b"out\n") == 4
    assert out.getvalue() == "out\n"


def test_read_waits_for_input():
    con, _ = _console()
    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(con.read, 10)
        assert not future.done()
        con.intr("hi\n")
        assert future.result(timeout=5) == b"hi\n"


def test_negative_code_ends_batch():
    con, _ = _console()
    con.intr([ord("a"), ord("\n"), -1, ord("b"), ord("\n")])
    assert con.read(10) == b"a\n"
    assert con.w == con.e