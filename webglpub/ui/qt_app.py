import webbrowser

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QComboBox,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QProgressBar,
    QPushButton,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from ..analytics import Analytics
from ..builds import (
    add_build_directory,
    build_is_valid,
    describe_build,
    get_all_build_directories,
    valid_build_exists,
)
from ..client import PublishClient
from ..packager import Packager
from ..preferences import ProjectPreferences
from ..session_store import SessionProvider, load_snapshot, save_snapshot
from ..share.actions import DestroyAction, NotLoginAction, OnErrorAction, QueryProgressAction, StopUploadAction
from ..messages import tr
from ..share.middleware import ShareMiddleware, create_store, publish_actions
from ..share.state import AppState, ShareStep
from ..utils import DEFAULT_GAME_NAME, get_logger
from .threads import TaskRunner

SNAPSHOT_KEY = "ShareWindow"

TAB_NOT_LOGGED_IN = "not_logged_in"
TAB_NO_BUILD = "no_build"
TAB_UPLOAD = "upload"
TAB_UPLOADING = "uploading"
TAB_PROCESSING = "processing"
TAB_SUCCESS = "success"
TAB_ERROR = "error"


def _page(*widgets: QWidget) -> QWidget:
    page = QWidget()
    layout = QVBoxLayout(page)
    layout.setContentsMargins(16, 16, 16, 16)
    layout.setSpacing(10)
    for widget in widgets:
        layout.addWidget(widget)
    layout.addStretch(1)
    return page


def _button(text: str, slot) -> QPushButton:
    btn = QPushButton(text)
    btn.setCursor(Qt.PointingHandCursor)
    btn.clicked.connect(slot)
    return btn


class ShareWindow(QMainWindow):
    def __init__(self, project_dir: str = ".") -> None:
        super().__init__()
        self.setWindowTitle("Publish")
        self.setMinimumSize(300, 300)
        self.resize(520, 360)
        self.logger = get_logger("webglpub.qt")

        self.session = SessionProvider()
        self.prefs = ProjectPreferences()
        self.client = PublishClient()
        self.runner = TaskRunner()
        analytics = Analytics()
        share = ShareMiddleware(
            self.session,
            Packager(project_dir),
            self.prefs,
            self.client,
            self.runner,
            analytics=analytics,
            is_context_open=self.isVisible,
        )
        initial = AppState.from_json(load_snapshot(SNAPSHOT_KEY)).resumable()
        self._resume_poll = initial.needs_poll
        self.store = create_store(share, initial_state=initial, observer=self, analytics=analytics)

        self.pages = QStackedWidget(self)
        self.setCentralWidget(self.pages)
        self._tabs = {}
        self._build_tabs()

        self._render(self.store.state)

    def _add_tab(self, name: str, page: QWidget) -> None:
        self._tabs[name] = self.pages.addWidget(page)

    def _build_tabs(self) -> None:
        self._add_tab(TAB_NOT_LOGGED_IN, _page(
            QLabel("You need to sign in to publish."),
            _button("Sign in", self.session.begin_login),
        ))
        self._add_tab(TAB_NO_BUILD, _page(
            QLabel("No WebGL build found. Locate a build folder to continue."),
            _button("Locate build", self._locate_build),
        ))

        self.title_edit = QLineEdit()
        self.title_edit.setPlaceholderText(DEFAULT_GAME_NAME)
        self.build_combo = QComboBox()
        row = QHBoxLayout()
        row.addWidget(_button("Locate build", self._locate_build))
        row.addWidget(_button("Publish", self._publish))
        buttons = QWidget()
        buttons.setLayout(row)
        self._add_tab(TAB_UPLOAD, _page(QLabel("Title"), self.title_edit, QLabel("Build"), self.build_combo, buttons))

        self.upload_bar = QProgressBar()
        self._add_tab(TAB_UPLOADING, _page(
            QLabel("Uploading..."), self.upload_bar, _button("Cancel", self._cancel_upload),
        ))
        self.processing_bar = QProgressBar()
        self._add_tab(TAB_PROCESSING, _page(
            QLabel("Processing on the server..."), self.processing_bar, _button("Cancel", self._cancel_upload),
        ))

        self.url_label = QLabel()
        self.url_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        self._add_tab(TAB_SUCCESS, _page(
            QLabel("Published!"), self.url_label,
            _button("Open in browser", lambda: webbrowser.open_new(self.store.state.url)),
            _button("Finish", self._finish),
        ))

        self.error_label = QLabel()
        self.error_label.setWordWrap(True)
        self.error_label.setStyleSheet("color: #b00020;")
        self._add_tab(TAB_ERROR, _page(self.error_label, _button("Back", self._finish)))

    def _tab_for(self, state: AppState) -> str:
        if state.error_msg:
            return TAB_ERROR
        if state.step == ShareStep.LOGIN:
            return TAB_NOT_LOGGED_IN
        if not valid_build_exists(self.prefs):
            return TAB_NO_BUILD
        if state.url:
            return TAB_SUCCESS
        if state.step == ShareStep.UPLOAD:
            return TAB_UPLOADING
        if state.step == ShareStep.PROCESS:
            return TAB_PROCESSING
        return TAB_UPLOAD

    def _render(self, state: AppState) -> None:
        tab = self._tab_for(state)
        self.error_label.setText(state.error_msg)
        self.url_label.setText(state.url)
        if tab == TAB_UPLOAD:
            self.build_combo.clear()
            for path in get_all_build_directories(self.prefs):
                if build_is_valid(path):
                    self.build_combo.addItem(describe_build(path), path)
        self.pages.setCurrentIndex(self._tabs[tab])

    # observer

    def on_state_changed(self, state: AppState) -> None:
        self._render(state)

    def on_upload_progress(self, percent: int) -> None:
        self.upload_bar.setValue(percent)

    def on_processing_progress(self, percent: int) -> None:
        self.processing_bar.setValue(percent)

    # user actions

    def _locate_build(self) -> None:
        path = QFileDialog.getExistingDirectory(self, "Choose folder")
        if not path:
            return
        if not build_is_valid(path):
            self.store.dispatch(OnErrorAction(error_msg=tr("ERROR_BUILD_ABSENT")))
            return
        add_build_directory(self.prefs, path)
        self._render(self.store.state)

    def _publish(self) -> None:
        build_path = self.build_combo.currentData()
        if not build_path:
            return
        for action in publish_actions(self.title_edit.text(), build_path):
            self.store.dispatch(action)

    def _cancel_upload(self) -> None:
        self.store.dispatch(StopUploadAction())

    def _finish(self) -> None:
        self.store.dispatch(DestroyAction())

    def showEvent(self, event) -> None:
        super().showEvent(event)
        if not self.session.get_access_token():
            self.store.dispatch(NotLoginAction())
        elif self._resume_poll:
            self._resume_poll = False
            self.store.dispatch(QueryProgressAction())

    def closeEvent(self, event) -> None:
        save_snapshot(SNAPSHOT_KEY, self.store.state.to_json())
        self.store.dispatch(DestroyAction())
        self.runner.shutdown()
        self.client.close()
        super().closeEvent(event)
