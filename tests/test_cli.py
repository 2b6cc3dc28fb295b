from __future__ import annotations

import pytest

from agentdesk import __version__
from agentdesk.cli import EXIT_OK, _build_parser, main
from agentdesk.runtime.client import AgentSessionsStore


class TestCli:
    def test_version(self, capsys) -> None:
        with pytest.raises(SystemExit):
            main(["--version"])
        assert __version__ in capsys.readouterr().out

    def test_run_arguments(self) -> None:
        args = _build_parser().parse_args(["run", "tidy notes", "--continue", "--attach", "a.txt"])
        assert args.intent == "tidy notes"
        assert args.continue_session is True
        assert args.attach == ["a.txt"]

    def test_sessions_lists_saved_records(self, tmp_path, monkeypatch, capsys) -> None:
        path = tmp_path / "sessions.json"
        store = AgentSessionsStore(path=path)
        sid = store.create_session("summarize the inbox")
        store.save()
        monkeypatch.setenv("AGENTDESK_SESSIONS_PATH", str(path))

        assert main(["sessions"]) == EXIT_OK
        out = capsys.readouterr().out
        assert sid in out
        assert out.startswith("*")
        assert "summarize the inbox" in out

    def test_bad_numeric_env_is_a_config_error(self, monkeypatch, capsys) -> None:
        monkeypatch.setenv("AGENTDESK_MAX_RESULT_CHARS", "lots")
        assert main(["sessions"]) == 5
        assert "AGENTDESK_MAX_RESULT_CHARS" in capsys.readouterr().err

    def test_run_with_corrupt_sessions_file_is_a_config_error(self, tmp_path, monkeypatch, capsys) -> None:
        path = tmp_path / "sessions.json"
        path.write_text("{not json", encoding="utf-8")
        monkeypatch.setenv("AGENTDESK_SESSIONS_PATH", str(path))

        assert main(["run", "list my files", "--server", "http://127.0.0.1:9"]) == 5
        assert capsys.readouterr().err
        assert path.read_text(encoding="utf-8") == "{not json"
