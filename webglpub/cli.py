import argparse
import os
import sys

from endpoints import BASE_URLS, DEFAULT_ENVIRONMENT
from .builds import (
    add_build_directory,
    build_is_valid,
    folder_size,
    get_all_build_directories,
    remove_build_directory,
)
from .messages import tr
from .preferences import DEFAULT_SETTINGS_PATH, ProjectPreferences
from .session_store import DEFAULT_SESSION_PATH, SessionProvider, load_tokens_from_json, save_session
from .share.state import AppState, ShareStep
from .utils import format_bytes

STALL_CHECK_INTERVAL = 5.0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='webglpub')
    sub = p.add_subparsers(dest='cmd', required=True)

    auth = sub.add_parser('auth')
    auth_sub = auth.add_subparsers(dest='auth_cmd', required=True)
    auth_import = auth_sub.add_parser('import')
    auth_import.add_argument('--tokens', required=True)
    auth_import.add_argument('--env', default=DEFAULT_ENVIRONMENT, choices=sorted(BASE_URLS))
    auth_import.add_argument('--out', default=DEFAULT_SESSION_PATH)

    builds = sub.add_parser('builds')
    builds.add_argument('--settings', default=DEFAULT_SETTINGS_PATH)
    builds_sub = builds.add_subparsers(dest='builds_cmd', required=True)
    builds_sub.add_parser('ls')
    builds_add = builds_sub.add_parser('add')
    builds_add.add_argument('path')
    builds_rm = builds_sub.add_parser('rm')
    builds_rm.add_argument('path')

    publish = sub.add_parser('publish')
    publish.add_argument('build_dir')
    publish.add_argument('--title', default='')
    publish.add_argument('--project-dir', default=os.getcwd())
    publish.add_argument('--session', default=DEFAULT_SESSION_PATH)
    publish.add_argument('--settings', default=DEFAULT_SETTINGS_PATH)

    sub.add_parser('gui')
    return p


class ConsoleObserver:
    """Prints workflow progress and stops the event loop on a terminal state.

    ``restart`` is called when a login completes, since the publish that hit
    the login wall does not resume by itself.
    """

    def __init__(self, quit_loop, session: SessionProvider, restart=None) -> None:
        self._quit = quit_loop
        self._session = session
        self.restart = restart
        self._step = None
        self._login_requested = False
        self.done = False
        self.exit_code = 0

    def on_state_changed(self, state: AppState) -> None:
        if self.done:
            return
        if state.error_msg:
            print(f"Error: {state.error_msg}", file=sys.stderr)
            self._finish(1)
            return
        if state.url and state.step == ShareStep.IDLE:
            print(state.url)
            self._finish(0)
            return
        if state.step != self._step:
            previous, self._step = self._step, state.step
            print(f"Step: {state.step.value}")
            if state.step == ShareStep.LOGIN and not self._login_requested:
                self._login_requested = True
                self._session.begin_login()
            elif previous == ShareStep.LOGIN and state.step == ShareStep.IDLE and self.restart:
                print("Signed in, publishing again")
                self.restart()

    def check_stalled(self, busy: bool) -> None:
        """Ends the run when nothing is pending and no result arrived."""
        if self.done or busy:
            return
        print(f"Error: {tr('ERROR_STALLED')}", file=sys.stderr)
        self._finish(1)

    def on_upload_progress(self, percent: int) -> None:
        print(f"Upload {percent}%")

    def on_processing_progress(self, percent: int) -> None:
        print(f"Processing {percent}%")

    def _finish(self, code: int) -> None:
        self.done = True
        self.exit_code = code
        self._quit()


def publish(args: argparse.Namespace) -> int:
    from PySide6.QtCore import QCoreApplication, QTimer

    from .analytics import Analytics
    from .client import PublishClient
    from .packager import Packager
    from .share.actions import DestroyAction
    from .share.middleware import ShareMiddleware, create_store, publish_actions
    from .ui.threads import TaskRunner

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    session = SessionProvider(args.session)
    prefs = ProjectPreferences(args.settings)
    client = PublishClient()
    observer = ConsoleObserver(app.quit, session)
    analytics = Analytics()
    runner = TaskRunner()
    share = ShareMiddleware(
        session,
        Packager(args.project_dir),
        prefs,
        client,
        runner,
        analytics=analytics,
        is_context_open=lambda: not observer.done,
    )
    store = create_store(share, observer=observer, analytics=analytics)
    build_dir = os.path.abspath(args.build_dir)
    if build_is_valid(build_dir):
        add_build_directory(prefs, build_dir)

    def start() -> None:
        for action in publish_actions(args.title, build_dir):
            store.dispatch(action)

    observer.restart = start
    stall_check = QTimer()
    stall_check.setInterval(int(STALL_CHECK_INTERVAL * 1000))
    stall_check.timeout.connect(lambda: observer.check_stalled(share.busy))
    stall_check.start()
    QTimer.singleShot(0, start)
    app.exec()
    stall_check.stop()
    store.dispatch(DestroyAction())
    runner.shutdown()
    client.close()
    return observer.exit_code


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if args.cmd == 'auth' and args.auth_cmd == 'import':
        tokens = load_tokens_from_json(args.tokens)
        if not tokens.get('access_token'):
            raise SystemExit('Tokens file has no access_token')
        save_session(args.out, tokens, args.env)
        print(f'OK: session saved to {args.out}')
        return 0

    if args.cmd == 'builds':
        prefs = ProjectPreferences(args.settings)
        if args.builds_cmd == 'ls':
            for path in get_all_build_directories(prefs):
                if path:
                    status = 'ok' if build_is_valid(path) else 'invalid'
                    size = format_bytes(folder_size(path)) if os.path.isdir(path) else '-'
                    print(f"{status}\t{path}\t{size}")
            return 0
        path = os.path.abspath(args.path)
        if args.builds_cmd == 'add':
            if not build_is_valid(path):
                raise SystemExit(f'Not a valid WebGL build: {path}')
            add_build_directory(prefs, path)
        else:
            remove_build_directory(prefs, path)
        print('OK')
        return 0

    if args.cmd == 'publish':
        return publish(args)

    if args.cmd == 'gui':
        from .ui.qt_main import main as qt_main

        return qt_main()

    return 1


if __name__ == '__main__':
    raise SystemExit(main())
