"""CLI tests"""

from __future__ import annotations

import json
import sys

import pytest

from conftest import make_build
from webglpub.builds import get_all_build_directories
from webglpub.cli import ConsoleObserver, main
from webglpub.messages import tr
from webglpub.preferences import ProjectPreferences
from webglpub.session_store import load_session
from webglpub.share.state import AppState, ShareStep


def run_cli(monkeypatch, *args: str) -> int:
    monkeypatch.setattr(sys, "argv", ["webglpub", *args])
    return main()


class TestAuthImport:
    def test_saves_session(self, tmp_path, monkeypatch, capsys) -> None:
        tokens = tmp_path / "tokens.json"
        tokens.write_text(json.dumps({"access_token": "abc"}))
        out = tmp_path / "session.json"

        code = run_cli(monkeypatch, "auth", "import", "--tokens", str(tokens), "--env", "dev", "--out", str(out))

        assert code == 0
        assert load_session(str(out))["environment"] == "dev"
        assert "session saved" in capsys.readouterr().out

    def test_requires_access_token(self, tmp_path, monkeypatch) -> None:
        tokens = tmp_path / "tokens.json"
        tokens.write_text("{}")
        with pytest.raises(SystemExit):
            run_cli(monkeypatch, "auth", "import", "--tokens", str(tokens), "--out", str(tmp_path / "s.json"))


class TestBuilds:
    def test_add_ls_rm(self, tmp_path, monkeypatch, capsys) -> None:
        settings = str(tmp_path / "settings.json")
        build = make_build(tmp_path)

        assert run_cli(monkeypatch, "builds", "--settings", settings, "add", build) == 0
        assert run_cli(monkeypatch, "builds", "--settings", settings, "ls") == 0
        out = capsys.readouterr().out
        assert f"ok\t{build}\t" in out
        assert "KB" in out or " B" in out

        assert run_cli(monkeypatch, "builds", "--settings", settings, "rm", build) == 0
        assert build not in get_all_build_directories(ProjectPreferences(settings))

    def test_add_rejects_invalid_build(self, tmp_path, monkeypatch) -> None:
        with pytest.raises(SystemExit):
            run_cli(monkeypatch, "builds", "--settings", str(tmp_path / "s.json"), "add", str(tmp_path))


class TestConsoleObserver:
    def test_success_quits_with_zero(self, session, capsys) -> None:
        quits = []
        observer = ConsoleObserver(lambda: quits.append(True), session)

        observer.on_state_changed(AppState(step=ShareStep.UPLOAD))
        observer.on_state_changed(AppState(step=ShareStep.IDLE, url="https://x/p"))

        assert quits == [True]
        assert observer.exit_code == 0
        assert "https://x/p" in capsys.readouterr().out

    def test_error_quits_with_one(self, session) -> None:
        quits = []
        observer = ConsoleObserver(lambda: quits.append(True), session)

        observer.on_state_changed(AppState(error_msg="boom"))
        observer.on_state_changed(AppState(error_msg="again"))

        assert quits == [True]
        assert observer.exit_code == 1

    def test_login_step_requests_login_once(self, session) -> None:
        observer = ConsoleObserver(lambda: None, session)

        observer.on_state_changed(AppState(step=ShareStep.LOGIN))
        observer.on_state_changed(AppState(step=ShareStep.IDLE))
        observer.on_state_changed(AppState(step=ShareStep.LOGIN))

        assert session.login_requests == 1

    def test_login_then_idle_restarts_publish(self, session) -> None:
        restarts = []
        observer = ConsoleObserver(lambda: None, session, restart=lambda: restarts.append(True))

        observer.on_state_changed(AppState(step=ShareStep.IDLE))
        observer.on_state_changed(AppState(step=ShareStep.UPLOAD))
        observer.on_state_changed(AppState(step=ShareStep.LOGIN))
        observer.on_state_changed(AppState(step=ShareStep.IDLE))

        assert restarts == [True]
        assert not observer.done

    def test_stalled_run_quits_with_one(self, session, capsys) -> None:
        quits = []
        observer = ConsoleObserver(lambda: quits.append(True), session)
        observer.on_state_changed(AppState(step=ShareStep.UPLOAD))

        observer.check_stalled(busy=True)
        assert quits == []

        observer.check_stalled(busy=False)
        observer.check_stalled(busy=False)

        assert quits == [True]
        assert observer.exit_code == 1
        assert tr("ERROR_STALLED") in capsys.readouterr().err

    def test_finished_run_is_not_stalled(self, session) -> None:
        quits = []
        observer = ConsoleObserver(lambda: quits.append(True), session)
        observer.on_state_changed(AppState(url="https://x/p"))

        observer.check_stalled(busy=False)

        assert quits == [True]
        assert observer.exit_code == 0
