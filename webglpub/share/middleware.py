from typing import Any, Callable, Dict, List, Optional

from .. import api
from ..analytics import Analytics, UploadResult
from ..builds import build_is_valid, read_build_guid
from ..client import REQUEST_ABORTED, PublishClient
from ..messages import tr
from ..models import ProgressResponse, UploadResponse
from ..packager import ZIP_FILE_LIMIT_BYTES, Packager
from ..preferences import ProjectPreferences
from ..session_store import SessionProvider
from ..utils import format_bytes, get_logger
from .actions import (
    BuildFinishAction,
    DestroyAction,
    LoginAction,
    NotLoginAction,
    OnErrorAction,
    QueryProgressAction,
    QueryProgressResponseAction,
    ShareStartAction,
    StopUploadAction,
    TitleChangeAction,
    UploadProgressAction,
    UploadStartAction,
    ZipPathChangeAction,
)
from .reducer import share_reducer
from .state import AppState
from .store import Dispatcher, Middleware, Store

UNDEFINED_GUID = "UNDEFINED_GUID"
PROJECT_ID_KEY = "webglSharingProjectId"

UPLOAD_PROGRESS_INTERVAL = 0.5
PROCESSING_REFRESH_DELAY = 1.5
LOGIN_REFRESH_DELAY = 2.0


class CancelToken:
    """One run of an async operation. Cancelling it stops the timers it owns."""

    def __init__(self) -> None:
        self.cancelled = False
        self._stoppers: List[Callable[[], None]] = []

    def on_cancel(self, fn: Callable[[], None]) -> None:
        if self.cancelled:
            fn()
            return
        self._stoppers.append(fn)

    def discard(self, fn: Callable[[], None]) -> None:
        if fn in self._stoppers:
            self._stoppers.remove(fn)

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        stoppers, self._stoppers = self._stoppers, []
        for stop in stoppers:
            stop()


class ShareMiddleware:
    """Performs the side effects implied by share actions.

    Never touches the state directly: every outcome is a new dispatch. Blocking
    work goes through ``runner.run`` and delays through ``runner.schedule``; the
    runner is expected to deliver callbacks on the store's thread.

    At most one publish (packaging followed by its upload) runs at a time; a
    ShareStart or UploadStart arriving while one is in flight is ignored.
    """

    def __init__(
        self,
        session: SessionProvider,
        packager: Packager,
        prefs: ProjectPreferences,
        client: PublishClient,
        runner: Any,
        analytics: Optional[Analytics] = None,
        is_context_open: Callable[[], bool] = lambda: True,
        validate_build: Callable[[str], bool] = build_is_valid,
    ) -> None:
        self._session = session
        self._packager = packager
        self._prefs = prefs
        self._client = client
        self._runner = runner
        self._analytics = analytics or Analytics()
        self._is_context_open = is_context_open
        self._validate_build = validate_build
        self.logger = get_logger("webglpub.share")

        self._packaging: Optional[CancelToken] = None
        self._upload_request: Optional[api.UploadRequest] = None
        self._upload_ticket: Optional[CancelToken] = None
        self._poll: Optional[CancelToken] = None
        self._login_wait: Optional[CancelToken] = None

    def __call__(self, store: Store) -> Callable[[Dispatcher], Dispatcher]:
        handlers: Dict[type, Callable[[Any], None]] = {
            ShareStartAction: lambda a: self._zip_and_share(store, a.title, a.build_path),
            UploadStartAction: lambda a: self._upload(store, a.build_guid),
            QueryProgressAction: lambda a: self._check_progress(store, a.key),
            StopUploadAction: lambda a: self._stop_upload(),
            NotLoginAction: lambda a: self._check_login_status(store),
            DestroyAction: lambda a: self._teardown(),
        }

        def wrap(next_dispatch: Dispatcher) -> Dispatcher:
            def handle(action: Any) -> Any:
                result = next_dispatch(action)
                handler = handlers.get(type(action))
                if handler is not None:
                    handler(action)
                return result

            return handle

        return wrap

    @property
    def packaging_active(self) -> bool:
        return self._packaging is not None

    @property
    def upload_in_flight(self) -> bool:
        return self._upload_request is not None

    @property
    def login_wait_active(self) -> bool:
        return self._login_wait is not None

    @property
    def busy(self) -> bool:
        """True while any packaging, upload, poll or login-wait run is pending."""
        return any(
            run is not None for run in (self._packaging, self._upload_request, self._poll, self._login_wait)
        )

    def _schedule(self, ticket: CancelToken, delay: float, fn: Callable[[], None]) -> None:
        timer = None

        def stop() -> None:
            self._runner.cancel(timer)

        def fire() -> None:
            ticket.discard(stop)
            if not ticket.cancelled:
                fn()

        timer = self._runner.schedule(delay, fire)
        ticket.on_cancel(stop)

    # ShareStart

    def _zip_and_share(self, store: Store, title: str, build_path: str) -> None:
        if self._packaging is not None or self._upload_request is not None:
            self.logger.warning("Publish already in progress, ignoring request for %s", build_path)
            return

        store.dispatch(TitleChangeAction(title=title))

        if not self._validate_build(build_path):
            store.dispatch(OnErrorAction(error_msg=tr("ERROR_BUILD_ABSENT")))
            return

        def package():
            zip_path = self._packager.archive(build_path)
            return zip_path, self._packager.archive_size(zip_path)

        ticket = CancelToken()
        self._packaging = ticket
        self._runner.run(
            package,
            on_result=lambda result: self._on_packaged(store, ticket, build_path, *result),
            on_error=lambda exc: self._on_packaging_failed(store, ticket, exc),
        )

    def _on_packaged(self, store: Store, ticket: CancelToken, build_path: str, zip_path: str, size: int) -> None:
        if ticket.cancelled:
            self.logger.info("Packaging finished after cancel, discarding %s", zip_path)
            self._packager.discard(zip_path)
            return
        self._end_packaging(ticket)

        if size > ZIP_FILE_LIMIT_BYTES:
            self._packager.discard(zip_path)
            store.dispatch(OnErrorAction(error_msg=tr("ERROR_MAX_SIZE", format_bytes(ZIP_FILE_LIMIT_BYTES))))
            return
        store.dispatch(ZipPathChangeAction(zip_path=zip_path))

        build_guid = read_build_guid(build_path)
        if build_guid is None:
            self.logger.warning(
                "Missing GUID file for %s, consider deleting the build and making a new one", build_path
            )
            build_guid = UNDEFINED_GUID
        store.dispatch(UploadStartAction(build_guid=build_guid))

    def _on_packaging_failed(self, store: Store, ticket: CancelToken, exc: Exception) -> None:
        if ticket.cancelled:
            return
        self._end_packaging(ticket)
        self.logger.error("Packaging failed: %s", exc)
        store.dispatch(OnErrorAction(error_msg=tr("ERROR_ZIP_FAILED", exc)))

    def _end_packaging(self, ticket: CancelToken) -> None:
        if self._packaging is ticket:
            self._packaging = None

    def _cancel_packaging(self) -> None:
        if self._packaging is not None:
            self._packaging.cancel()
            self._packaging = None

    # UploadStart / StopUpload

    def _upload(self, store: Store, build_guid: str) -> None:
        token = self._session.get_access_token()
        if not token:
            store.dispatch(NotLoginAction())
            return
        if self._upload_request is not None:
            self.logger.warning("Upload already in flight, ignoring UploadStart")
            return

        state: AppState = store.state
        request = api.upload_build(
            self._client,
            self._session.base_url(),
            token,
            state.zip_path,
            state.display_title,
            build_guid=build_guid,
            project_id=self._prefs.get(PROJECT_ID_KEY),
        )
        ticket = CancelToken()
        self._upload_request = request
        self._upload_ticket = ticket
        self.logger.info("Uploading %s", state.zip_path)
        self._runner.run(
            request.send,
            on_result=lambda response: self._on_uploaded(store, request, ticket, response),
            on_error=lambda exc: self._on_upload_failed(store, request, ticket, exc),
        )
        self._sample_upload_progress(store, request, ticket)

    def _sample_upload_progress(self, store: Store, request: api.UploadRequest, ticket: CancelToken) -> None:
        if ticket.cancelled or request.is_done or request.aborted:
            return
        store.dispatch(UploadProgressAction(progress=int(request.upload_progress * 100)))
        self._schedule(ticket, UPLOAD_PROGRESS_INTERVAL, lambda: self._sample_upload_progress(store, request, ticket))

    def _finish_upload(self, request: api.UploadRequest, ticket: CancelToken) -> None:
        ticket.cancel()
        if self._upload_request is request:
            self._upload_request = None
            self._upload_ticket = None

    def _on_uploaded(
        self, store: Store, request: api.UploadRequest, ticket: CancelToken, response: UploadResponse
    ) -> None:
        self._finish_upload(request, ticket)
        if request.aborted:
            return
        if not response.key:
            self.logger.error("Upload response carried no job key")
            store.dispatch(OnErrorAction(error_msg=tr("ERROR_NO_JOB_KEY")))
            return
        store.dispatch(QueryProgressAction(key=response.key))

    def _on_upload_failed(
        self, store: Store, request: api.UploadRequest, ticket: CancelToken, exc: Exception
    ) -> None:
        self._finish_upload(request, ticket)
        if str(exc) == REQUEST_ABORTED:
            self.logger.info("Upload cancelled")
            return
        self.logger.error("Upload failed: %s", exc)
        store.dispatch(OnErrorAction(error_msg=str(exc)))

    def _stop_upload(self) -> None:
        self._cancel_packaging()
        if self._upload_request is not None:
            self._upload_request.abort()
            self._finish_upload(self._upload_request, self._upload_ticket)
            self._analytics.upload_completed(UploadResult.CANCELLED)
        self._cancel_poll()

    # QueryProgress

    def _check_progress(self, store: Store, key: Optional[str]) -> None:
        token = self._session.get_access_token()
        if not token:
            store.dispatch(NotLoginAction())
            return

        # A new job key or a poll with no loop running starts a fresh loop.
        if key or self._poll is None:
            self._cancel_poll()
            self._poll = CancelToken()
        ticket = self._poll
        key = key or store.state.key
        if not key:
            self.logger.warning("No job key to poll")
            self._cancel_poll()
            return

        base_url = self._session.base_url()
        self._runner.run(
            lambda: api.get_progress(self._client, base_url, token, key),
            on_result=lambda response: self._on_progress(store, ticket, response),
            on_error=lambda exc: self._on_progress_failed(ticket, exc),
        )

    def _on_progress(self, store: Store, ticket: CancelToken, response: ProgressResponse) -> None:
        if ticket.cancelled:
            return
        store.dispatch(QueryProgressResponseAction(response=response))
        if response.finished:
            self._save_project_id(response.project_id)
            if self._poll is ticket:
                self._poll = None
            result = UploadResult.FAILED if response.error else UploadResult.SUCCEEDED
            self._analytics.upload_completed(result)
            return
        self._schedule(ticket, PROCESSING_REFRESH_DELAY, lambda: store.dispatch(QueryProgressAction()))

    def _on_progress_failed(self, ticket: CancelToken, exc: Exception) -> None:
        if ticket.cancelled:
            return
        self._analytics.upload_completed(UploadResult.FAILED)
        self.logger.error("Progress query failed: %s", exc)
        if self._poll is ticket:
            self._poll = None

    def _save_project_id(self, project_id: str) -> None:
        if not project_id:
            return
        self._prefs.set(PROJECT_ID_KEY, project_id)

    def _cancel_poll(self) -> None:
        if self._poll is not None:
            self._poll.cancel()
            self._poll = None

    # NotLoggedIn

    def _check_login_status(self, store: Store) -> None:
        if self._session.get_access_token():
            store.dispatch(LoginAction())
            return
        if self._login_wait is not None:
            return
        ticket = CancelToken()
        self._login_wait = ticket
        self._schedule_login_check(store, ticket)

    def _schedule_login_check(self, store: Store, ticket: CancelToken) -> None:
        if not self._is_context_open():
            self.logger.debug("Login wait stopped: context closed")
            self._end_login_wait(ticket)
            return
        self._schedule(ticket, LOGIN_REFRESH_DELAY, lambda: self._wait_until_logged_in(store, ticket))

    def _wait_until_logged_in(self, store: Store, ticket: CancelToken) -> None:
        if self._session.get_access_token():
            self._end_login_wait(ticket)
            store.dispatch(LoginAction())
            return
        self._schedule_login_check(store, ticket)

    def _end_login_wait(self, ticket: CancelToken) -> None:
        ticket.cancel()
        if self._login_wait is ticket:
            self._login_wait = None

    # Destroy

    def _teardown(self) -> None:
        self._stop_upload()
        if self._login_wait is not None:
            self._end_login_wait(self._login_wait)


def progress_middleware(observer: Any) -> Middleware:
    """Forwards upload and processing percentages to the observer without a state round-trip."""

    def middleware(store: Store) -> Callable[[Dispatcher], Dispatcher]:
        def wrap(next_dispatch: Dispatcher) -> Dispatcher:
            def handle(action: Any) -> Any:
                result = next_dispatch(action)
                if isinstance(action, UploadProgressAction):
                    observer.on_upload_progress(action.progress)
                elif isinstance(action, QueryProgressResponseAction):
                    observer.on_processing_progress(action.response.progress)
                return result

            return handle

        return wrap

    return middleware


def analytics_middleware(analytics: Analytics) -> Middleware:
    def middleware(store: Store) -> Callable[[Dispatcher], Dispatcher]:
        def wrap(next_dispatch: Dispatcher) -> Dispatcher:
            def handle(action: Any) -> Any:
                if isinstance(action, UploadStartAction):
                    analytics.upload_started()
                return next_dispatch(action)

            return handle

        return wrap

    return middleware


def create_store(
    share: ShareMiddleware,
    initial_state: Optional[AppState] = None,
    observer: Any = None,
    analytics: Optional[Analytics] = None,
    extra_middlewares: Optional[List[Middleware]] = None,
) -> Store:
    middlewares: List[Middleware] = list(extra_middlewares or [])
    middlewares.append(analytics_middleware(analytics or Analytics()))
    if observer is not None:
        middlewares.append(progress_middleware(observer))
    middlewares.append(share)
    state_changed = getattr(observer, "on_state_changed", None)
    return Store(share_reducer, initial_state or AppState(), *middlewares, state_changed=state_changed)


def publish_actions(title: str, build_path: str) -> List[Any]:
    """Actions that publish ``build_path``: record it as the current build, then share it."""
    return [
        BuildFinishAction(output_dir=build_path, build_guid=read_build_guid(build_path) or ""),
        ShareStartAction(title=title, build_path=build_path),
    ]
