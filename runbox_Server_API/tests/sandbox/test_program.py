import os
import sys
import time

import pytest

from runbox_Server_API.app.core.Sandbox.program import Program, ProgramOutcome, ProgramResult


PY = sys.executable


@pytest.mark.unit
def test_run_ok_captures_both_streams():
    res = Program(10, 4096).run("t1", PY, "-c", "import sys; print('out'); print('err', file=sys.stderr)")
    assert res.outcome == ProgramOutcome.ok
    assert res.ok
    assert res.stdout.strip() == "out"
    assert res.stderr.strip() == "err"
    assert res.exit_code == 0


@pytest.mark.unit
def test_nonzero_exit_is_exited():
    res = Program(10, 4096).run("t2", PY, "-c", "import sys; sys.stderr.write('bad'); sys.exit(3)")
    assert res.outcome == ProgramOutcome.exited
    assert not res.ok
    assert res.exit_code == 3
    assert res.stderr == "bad"
    assert res.exit_detail() == "exit status 3"


@pytest.mark.unit
def test_timeout_kills_program():
    started = time.monotonic()
    res = Program(0.5, 4096).run("t3", PY, "-c", "import time; print('started', flush=True); time.sleep(30)")
    elapsed = time.monotonic() - started
    assert res.outcome == ProgramOutcome.timed_out
    assert elapsed < 10
    assert "started" in res.stdout


@pytest.mark.unit
@pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")
def test_timeout_kills_grandchildren():
    # the child spawns a grandchild holding stdout open; killing only the
    # child would leave the readers waiting for the grandchild
    script = (
        "import subprocess, sys, time;"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)']);"
        "time.sleep(30)"
    )
    started = time.monotonic()
    res = Program(0.5, 4096).run("t4", PY, "-c", script)
    assert res.outcome == ProgramOutcome.timed_out
    assert time.monotonic() - started < 10


@pytest.mark.unit
def test_missing_binary_is_failed():
    res = Program(5, 4096).run("t5", "/nonexistent/definitely-not-docker")
    assert res.outcome == ProgramOutcome.failed
    assert isinstance(res.error, OSError)
    assert res.stdout == "" and res.stderr == ""


@pytest.mark.unit
def test_output_is_truncated_to_limit():
    res = Program(10, 100).run("t6", PY, "-c", "import sys; sys.stdout.write('x' * 100000)")
    assert res.outcome == ProgramOutcome.ok
    assert res.stdout == "x" * 100


@pytest.mark.unit
def test_run_stdin_feeds_program():
    res = Program(10, 4096).run_stdin("select 1;\n", "t7", PY, "-c", "import sys; print(sys.stdin.read().upper())")
    assert res.ok
    assert res.stdout.strip() == "SELECT 1;"


@pytest.mark.unit
def test_run_without_stdin_sees_eof():
    res = Program(10, 4096).run("t8", PY, "-c", "import sys; print(repr(sys.stdin.read()))")
    assert res.ok
    assert res.stdout.strip() == "''"


@pytest.mark.unit
def test_large_stdin_to_program_that_ignores_it():
    res = Program(10, 4096).run_stdin(b"y" * (1 << 20), "t9", PY, "-c", "print('done')")
    assert res.ok
    assert res.stdout.strip() == "done"


@pytest.mark.unit
def test_exit_detail_for_signal():
    assert ProgramResult(outcome=ProgramOutcome.exited, exit_code=-9).exit_detail() == "signal: sigkill"
