"""
Tests for the command-line interface.
"""

import pytest

from ..cli import main


def test_code_command_prints_six_digits(capsys):
    main(["code"])
    out = capsys.readouterr().out.strip()

    assert len(out) == 6
    assert 100000 <= int(out) <= 999999


def test_no_command_prints_help_and_exits(capsys):
    with pytest.raises(SystemExit) as exc:
        main([])

    assert exc.value.code == 1
    assert "serve" in capsys.readouterr().out
