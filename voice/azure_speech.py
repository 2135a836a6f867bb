"""
Azure Speech backend for the interview capture
Provides continuous speech recognition using the Azure Speech SDK
"""
import logging
import threading
from typing import Callable, Optional

import azure.cognitiveservices.speech as speechsdk

from core.config import Settings, get_settings
from .capture import CaptureError, SpeechSegment

logger = logging.getLogger(__name__)

# Substrings of SDK error details that mean the microphone could not be opened
_MIC_ERROR_MARKERS = ("SPXERR_MIC_NOT_AVAILABLE", "SPXERR_MIC_ERROR", "SPXERR_AUDIO_SYS_LIBRARY_NOT_FOUND")


def _cancellation_code(evt) -> str:
    """Map an Azure cancellation onto a recognizer error name"""
    details = evt.error_details or ""
    if any(marker in details for marker in _MIC_ERROR_MARKERS):
        return "not-allowed"
    error_code = getattr(evt, "error_code", None)
    if error_code in (speechsdk.CancellationErrorCode.AuthenticationFailure,
                      speechsdk.CancellationErrorCode.Forbidden):
        return "service-not-allowed"
    if error_code in (speechsdk.CancellationErrorCode.ConnectionFailure,
                      speechsdk.CancellationErrorCode.ServiceTimeout,
                      speechsdk.CancellationErrorCode.ServiceUnavailable):
        return "network"
    return "aborted"


class AzureSpeechBackend:
    """
    SpeechBackend over an Azure continuous SpeechRecognizer.
    Recognizer events arrive on SDK threads and are forwarded as SpeechSegments.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.speech_key = settings.speech_key
        self.speech_region = settings.speech_region
        self.language = settings.speech_language
        self.recognizer: Optional[speechsdk.SpeechRecognizer] = None
        self._lock = threading.Lock()
        self._on_segment: Optional[Callable[[SpeechSegment], None]] = None
        self._on_error: Optional[Callable[[CaptureError], None]] = None

    def is_available(self) -> bool:
        return bool(self.speech_key and self.speech_region)

    def request_permission(self) -> bool:
        """Check that a default-microphone audio config can be created

        The SDK opens the device only when recognition starts, so a missing or
        blocked microphone is reported later by start() as a "not-allowed"
        cancellation rather than here.
        """
        try:
            speechsdk.audio.AudioConfig(use_default_microphone=True)
        except RuntimeError as exc:
            raise CaptureError("not-allowed", str(exc)) from exc
        return True

    def start(self, on_segment: Callable[[SpeechSegment], None],
              on_error: Callable[[CaptureError], None]) -> None:
        """Start continuous speech recognition from the default microphone"""
        if not self.is_available():
            raise CaptureError("service-not-allowed", "Azure Speech key/region not configured")

        try:
            speech_config = speechsdk.SpeechConfig(subscription=self.speech_key, region=self.speech_region)
            speech_config.speech_recognition_language = self.language
            audio_config = speechsdk.audio.AudioConfig(use_default_microphone=True)
            recognizer = speechsdk.SpeechRecognizer(
                speech_config=speech_config,
                audio_config=audio_config
            )
        except RuntimeError as exc:
            raise CaptureError("audio-capture", f"Failed to start recording: {exc}") from exc

        with self._lock:
            self.recognizer = recognizer
            self._on_segment = on_segment
            self._on_error = on_error

        # Connect event handlers
        recognizer.recognizing.connect(self._on_recognizing)
        recognizer.recognized.connect(self._on_recognized)
        recognizer.canceled.connect(self._on_canceled)

        # Start continuous recognition in background
        recognizer.start_continuous_recognition_async()

    def stop(self) -> None:
        with self._lock:
            recognizer = self.recognizer
            self.recognizer = None
            self._on_segment = None
            self._on_error = None
        if recognizer is None:
            return

        try:
            recognizer.stop_continuous_recognition_async().get()
        except RuntimeError as exc:
            raise CaptureError("aborted", f"Error stopping recording: {exc}") from exc
        finally:
            recognizer.recognizing.disconnect_all()
            recognizer.recognized.disconnect_all()
            recognizer.canceled.disconnect_all()

    # Event handlers (called by Azure SDK)

    def _on_recognizing(self, evt):
        """Intermediate results (while speaking)"""
        if evt.result.reason == speechsdk.ResultReason.RecognizingSpeech:
            self._forward(SpeechSegment(evt.result.text, is_final=False))

    def _on_recognized(self, evt):
        """Final results (sentence complete)"""
        if evt.result.reason == speechsdk.ResultReason.RecognizedSpeech:
            self._forward(SpeechSegment(evt.result.text, is_final=True))
        elif evt.result.reason == speechsdk.ResultReason.NoMatch:
            logger.debug("Speech could not be recognized")

    def _on_canceled(self, evt):
        if evt.reason != speechsdk.CancellationReason.Error:
            return
        with self._lock:
            on_error = self._on_error
        if on_error:
            on_error(CaptureError(_cancellation_code(evt), f"Recognition error: {evt.error_details}"))

    def _forward(self, segment: SpeechSegment):
        with self._lock:
            on_segment = self._on_segment
        if on_segment:
            on_segment(segment)
