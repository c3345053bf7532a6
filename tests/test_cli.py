"""CLI tests."""

from program_test import derive
from program_test.cli import main


def test_keygen_with_seed_is_reproducible(capsys):
    assert main(["keygen", "--seed", "00" * 32]) == 0
    first = capsys.readouterr().out
    assert main(["keygen", "--seed", "00" * 32]) == 0
    assert capsys.readouterr().out == first


def test_derive_prints_address_and_bump(capsys):
    program_id = "a1" * 32
    expected = derive([b"agent", b"x"], program_id)

    assert main(["derive", "agent", "x", "--program-id", program_id]) == 0
    out = capsys.readouterr().out
    assert expected.address in out
    assert f"Bump:    {expected.bump}" in out


def test_derive_hex_seeds(capsys):
    program_id = "a1" * 32
    expected = derive([b"\x01\x02"], program_id)
    assert main(["derive", "0102", "--hex", "--program-id", program_id]) == 0
    assert expected.address in capsys.readouterr().out


def test_derive_reports_bad_seeds(capsys):
    assert main(["derive", "x" * 33, "--program-id", "a1" * 32]) == 1
    assert "Error" in capsys.readouterr().out


def test_keygen_reports_bad_seed(capsys):
    assert main(["keygen", "--seed", "00"]) == 1
    assert "Error" in capsys.readouterr().out


def test_demo_runs(capsys):
    assert main(["demo", "--genesis-seed", "cli-test"]) == 0
    out = capsys.readouterr().out
    assert "Overdraft rejected" in out
    assert "again: same" in out
    assert "2 transactions confirmed, 1 failed" in out


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out
