"""
Interview capture - microphone permission, recording, timer and transcript

Turns a continuous speech recognizer into the free-text answer consumed by the
interview flow. States:

    IDLE -> PERMISSION_PENDING -> READY | PERMISSION_DENIED
    READY <-> RECORDING

The speech backend delivers events on its own threads, so segment, tick and
stop handling are serialised with a lock. Once stop() has left RECORDING no
further segment is accepted.
"""
import dataclasses
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, runtime_checkable

from coach_logging.session_logger import get_logger
from core.errors import FlowError
from core.executor import FlowExecutor
from flows.oral_fluency import get_oral_fluency_prompt

logger = logging.getLogger(__name__)

PERMISSION_ERROR_CODES = frozenset({"not-allowed", "service-not-allowed"})


class CaptureState(str, Enum):
    IDLE = "idle"
    PERMISSION_PENDING = "permission_pending"
    READY = "ready"
    RECORDING = "recording"
    PERMISSION_DENIED = "permission_denied"


class MicPermission(str, Enum):
    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass
class InterviewSession:
    prompt: str = ""
    transcript: str = ""
    is_recording: bool = False
    elapsed_seconds: int = 0
    mic_permission: MicPermission = MicPermission.UNKNOWN
    # display only, never part of the transcript
    interim_text: str = ""


@dataclass(frozen=True)
class SpeechSegment:
    text: str
    is_final: bool


class CaptureError(Exception):
    """Error reported by the speech backend

    `code` follows the recognizer error names ("not-allowed",
    "service-not-allowed", "network", "no-speech", ...).
    """

    def __init__(self, code: str, message: str = ""):
        self.code = code
        self.message = message or code
        super().__init__(f"{code}: {self.message}" if message else code)

    @property
    def is_permission_error(self) -> bool:
        return self.code in PERMISSION_ERROR_CODES


class CaptureStateError(RuntimeError):
    """Action not allowed in the current capture state"""


@runtime_checkable
class SpeechBackend(Protocol):
    def is_available(self) -> bool:
        ...

    def request_permission(self) -> bool:
        ...

    def start(self, on_segment: Callable[[SpeechSegment], None],
              on_error: Callable[[CaptureError], None]) -> None:
        ...

    def stop(self) -> None:
        ...


def format_time(seconds: int) -> str:
    """75 -> '01:15'"""
    minutes, remaining = divmod(max(int(seconds), 0), 60)
    return f"{minutes:02d}:{remaining:02d}"


class InterviewCapture:
    """Controller for one oral-interview answer

    Args:
        backend: Speech recognizer to drive
        executor: Used to fetch oral fluency prompts; optional when a prompt is given
        prompt: Initial prompt (e.g. the interview question)
        on_transcript_change: Called with the full transcript whenever it changes
        on_notice: Called with (title, description) for user-facing notices
        auto_tick: Run a one-second ticker thread while recording
    """

    def __init__(
        self,
        backend: SpeechBackend,
        executor: Optional[FlowExecutor] = None,
        prompt: Optional[str] = None,
        on_transcript_change: Optional[Callable[[str], None]] = None,
        on_notice: Optional[Callable[[str, str], None]] = None,
        auto_tick: bool = True,
        tick_interval: float = 1.0,
    ):
        self.backend = backend
        self.executor = executor
        self.on_transcript_change = on_transcript_change
        self.on_notice = on_notice
        self.auto_tick = auto_tick
        self.tick_interval = tick_interval

        self._session = InterviewSession(prompt=prompt or "")
        self._state = CaptureState.IDLE
        self._mounted = False
        self._lock = threading.RLock()
        self._ticker: Optional[threading.Thread] = None
        self._ticker_stop = threading.Event()

    @property
    def session_logger(self):
        """Get logger dynamically to handle late initialization"""
        return get_logger()

    @property
    def state(self) -> CaptureState:
        with self._lock:
            return self._state

    @property
    def session(self) -> InterviewSession:
        """Snapshot of the session; mutating it has no effect on the controller"""
        with self._lock:
            return dataclasses.replace(self._session)

    @property
    def transcript(self) -> str:
        with self._lock:
            return self._session.transcript

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mount(self) -> CaptureState:
        """Detect the backend, ask for microphone access once, load a prompt"""
        with self._lock:
            if self._mounted:
                raise CaptureStateError("Capture is already mounted")
            self._mounted = True
            self._state = CaptureState.PERMISSION_PENDING

        supported = self.backend.is_available()
        if not supported:
            self._notice("Speech Not Supported", "Speech recognition is not available on this system.")
            granted = False
        else:
            try:
                granted = bool(self.backend.request_permission())
            except CaptureError as exc:
                logger.warning("Microphone permission request failed: %s", exc)
                granted = False

        with self._lock:
            self._session.mic_permission = MicPermission.GRANTED if granted else MicPermission.DENIED
            self._state = CaptureState.READY if granted else CaptureState.PERMISSION_DENIED
            state = self._state
        self._log("mount", {"permission": self._session.mic_permission.value})

        if supported and not granted:
            self._notice("Microphone Access Required",
                         "Please grant microphone access to start your practice session.")

        if not self._session.prompt and self.executor is not None:
            self.new_prompt()
        return state

    def close(self):
        """Unmount: stop any recording in progress"""
        if self.state == CaptureState.RECORDING:
            self.stop()
        self._log("close")

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def start(self):
        with self._lock:
            if self._state == CaptureState.RECORDING:
                raise CaptureStateError("Already recording")
            if self._state == CaptureState.PERMISSION_DENIED:
                denied = True
            elif self._state != CaptureState.READY:
                raise CaptureStateError(f"Cannot start recording while {self._state.value}")
            else:
                denied = False
                self._session.transcript = ""
                self._session.interim_text = ""
                self._session.elapsed_seconds = 0
                self._session.is_recording = True
                self._state = CaptureState.RECORDING

        if denied:
            self._notice("Microphone Access Denied",
                         "Please enable microphone permissions to use this feature.")
            raise CaptureStateError("Microphone access was denied")

        self._emit_transcript("")
        self._start_ticker()
        self._log("start")

        try:
            self.backend.start(self.handle_segment, self.handle_error)
        except CaptureError as exc:
            with self._lock:
                if self._state == CaptureState.RECORDING:
                    self._state = CaptureState.READY
                    self._session.is_recording = False
            self._stop_ticker()
            self.handle_error(exc)
            raise

    def stop(self) -> str:
        """Stop recording; returns the transcript, which is left intact"""
        with self._lock:
            if self._state != CaptureState.RECORDING:
                raise CaptureStateError("Not recording")
            self._state = CaptureState.READY
            self._session.is_recording = False
            self._session.interim_text = ""
            transcript = self._session.transcript
            elapsed = self._session.elapsed_seconds

        self._stop_ticker()
        try:
            self.backend.stop()
        except CaptureError as exc:
            self.handle_error(exc)
        self._log("stop", {"elapsed_seconds": elapsed, "transcript_length": len(transcript)})
        return transcript

    def new_prompt(self) -> Optional[str]:
        """Clear the transcript and fetch a fresh oral fluency prompt

        Returns the new prompt, or None when the flow failed (the previous
        prompt is kept and a notice is raised).
        """
        if self.executor is None:
            raise CaptureStateError("No executor to fetch prompts with")
        with self._lock:
            if self._state == CaptureState.RECORDING:
                raise CaptureStateError("Cannot change the prompt while recording")
            self._session.transcript = ""
            self._session.interim_text = ""
        self._emit_transcript("")

        try:
            prompt = get_oral_fluency_prompt(self.executor)
        except FlowError as exc:
            logger.error("Error getting oral fluency prompt: %s", exc)
            self._notice("Error", "Could not load a new prompt. Please try again.")
            return None

        with self._lock:
            self._session.prompt = prompt
        self._log("new_prompt")
        return prompt

    # ------------------------------------------------------------------
    # Backend events
    # ------------------------------------------------------------------

    def handle_segment(self, segment: SpeechSegment) -> bool:
        """Apply a recognizer result; returns False when it was ignored"""
        with self._lock:
            if self._state != CaptureState.RECORDING:
                logger.debug("Ignoring segment outside recording: %r", segment.text)
                return False
            if not segment.is_final:
                self._session.interim_text = segment.text
                return True

            text = segment.text.strip()
            if not text:
                return False
            previous = self._session.transcript.strip()
            transcript = f"{previous} {text}" if previous else text
            self._session.transcript = transcript
            self._session.interim_text = ""

        self._emit_transcript(transcript)
        return True

    def handle_error(self, error: CaptureError):
        if not error.is_permission_error:
            logger.warning("Speech recognition error: %s", error)
            if self.session_logger:
                self.session_logger.log_error("capture_error", str(error), {"code": error.code})
            return

        with self._lock:
            was_recording = self._state == CaptureState.RECORDING
            self._state = CaptureState.PERMISSION_DENIED
            self._session.mic_permission = MicPermission.DENIED
            self._session.is_recording = False
            self._session.interim_text = ""

        if was_recording:
            self._stop_ticker()
            try:
                self.backend.stop()
            except CaptureError as exc:
                logger.warning("Error stopping recognizer: %s", exc)
        self._log("permission_denied", {"code": error.code})
        self._notice("Microphone Access Denied",
                     "Please enable microphone permissions to use this feature.")

    def tick(self):
        """One second of recording time; no-op outside RECORDING"""
        with self._lock:
            if self._state == CaptureState.RECORDING:
                self._session.elapsed_seconds += 1

    def format_elapsed(self) -> str:
        with self._lock:
            return format_time(self._session.elapsed_seconds)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_ticker(self):
        if not self.auto_tick:
            return
        self._ticker_stop = threading.Event()
        stop_event = self._ticker_stop

        def run():
            while not stop_event.wait(self.tick_interval):
                self.tick()

        self._ticker = threading.Thread(target=run, name="capture-ticker", daemon=True)
        self._ticker.start()

    def _stop_ticker(self):
        self._ticker_stop.set()
        ticker = self._ticker
        self._ticker = None
        if ticker is not None and ticker is not threading.current_thread():
            ticker.join(timeout=self.tick_interval * 2)

    def _emit_transcript(self, transcript: str):
        if self.on_transcript_change:
            self.on_transcript_change(transcript)

    def _notice(self, title: str, description: str):
        logger.info("%s: %s", title, description)
        if self.on_notice:
            self.on_notice(title, description)

    def _log(self, action: str, details: Optional[dict] = None):
        if self.session_logger:
            self.session_logger.log_capture_event(action, details)
