"""
Logging utility for the career coach.
Records flow runs, LLM traffic and interview capture events for a session,
as a JSON event log plus a human-readable text log.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


class SessionLogger:
    """Logger for one coaching session (flow calls and oral interview capture)"""

    def __init__(self, session_id: str, log_dir: str = "logs", console: bool = True):
        """
        Initialize logger for a specific session.

        Args:
            session_id: Unique identifier for the session
            log_dir: Directory to store log files
            console: Also echo INFO-level messages to the console
        """
        self.session_id = session_id
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = self.log_dir / f"session_{session_id}_{timestamp}.json"
        self.text_log_file = self.log_dir / f"session_{session_id}_{timestamp}.txt"

        self.log_data = {
            "session_id": session_id,
            "start_time": datetime.now().isoformat(),
            "end_time": None,
            "llm_provider": None,
            "flow_calls": 0,
            "flow_failures": 0,
            "events": []
        }

        self.text_logger = logging.getLogger(f"coach_session_{session_id}")
        self.text_logger.setLevel(logging.DEBUG)
        self.text_logger.propagate = False

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        fh = logging.FileHandler(self.text_log_file, encoding='utf-8')
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(formatter)
        self.text_logger.addHandler(fh)

        if console:
            ch = logging.StreamHandler()
            ch.setLevel(logging.INFO)
            ch.setFormatter(formatter)
            self.text_logger.addHandler(ch)

        self.text_logger.info(f"Session started: {session_id}")

    def log_event(self, event_type: str, data: Dict[str, Any]):
        """
        Log an event with timestamp.

        Args:
            event_type: Type of event (e.g., 'flow_start', 'llm_response', 'capture')
            data: Event data
        """
        event = {
            "timestamp": datetime.now().isoformat(),
            "event_type": event_type,
            "data": data
        }
        self.log_data["events"].append(event)
        self.text_logger.debug(f"[{event_type}] {json.dumps(data, ensure_ascii=False, default=str)}")

    def log_flow_start(self, flow_name: str, input_fields: List[str]):
        self.log_data["flow_calls"] += 1
        self.log_event("flow_start", {"flow": flow_name, "input_fields": sorted(input_fields)})
        self.text_logger.info(f"Flow started: {flow_name}")

    def log_flow_end(self, flow_name: str, duration_ms: float, output_fields: List[str]):
        self.log_event("flow_end", {
            "flow": flow_name,
            "duration_ms": round(duration_ms, 1),
            "output_fields": sorted(output_fields)
        })
        self.text_logger.info(f"Flow completed: {flow_name} ({duration_ms:.0f}ms)")

    def log_flow_failure(self, flow_name: str, error: Exception, duration_ms: float):
        self.log_data["flow_failures"] += 1
        issues = [str(issue) for issue in getattr(error, "issues", [])]
        self.log_event("flow_failure", {
            "flow": flow_name,
            "error_type": type(error).__name__,
            "error_message": str(error),
            "issues": issues,
            "duration_ms": round(duration_ms, 1)
        })
        self.text_logger.warning(f"Flow failed: {flow_name} ({type(error).__name__}: {error})")

    def log_llm_request(self, prompt: str, model: str, attempt: int = 1):
        """Log LLM request"""
        self.log_event("llm_request", {
            "model": model,
            "prompt": prompt,
            "prompt_length": len(prompt),
            "attempt": attempt
        })
        self.text_logger.debug(f"LLM Request (model: {model}, length: {len(prompt)}, attempt: {attempt})")

    def log_llm_response(self, response: str, tokens: int, metadata: Optional[Dict] = None):
        """Log LLM response"""
        self.log_event("llm_response", {
            "response": response,
            "response_length": len(response),
            "tokens": tokens,
            "metadata": metadata or {}
        })
        self.text_logger.debug(f"LLM Response (tokens: {tokens}, length: {len(response)})")

    def log_retry(self, kind: str, attempt: int, delay_seconds: float):
        self.log_event("llm_retry", {"kind": kind, "attempt": attempt, "delay_seconds": delay_seconds})
        self.text_logger.info(f"Retrying after {kind} (attempt {attempt}, backoff {delay_seconds:.1f}s)")

    def log_capture_event(self, action: str, details: Optional[Dict[str, Any]] = None):
        """Log an interview capture transition (mount, start, stop, denied, ...)"""
        self.log_event("capture", {"action": action, **(details or {})})
        self.text_logger.info(f"Capture: {action}")

    def log_error(self, error_type: str, error_message: str, context: Optional[Dict] = None):
        """Log an error"""
        self.log_event("error", {
            "error_type": error_type,
            "error_message": error_message,
            "context": context or {}
        })
        self.text_logger.error(f"Error ({error_type}): {error_message}")

    def set_llm_provider(self, provider: str):
        """Set the LLM provider being used"""
        self.log_data["llm_provider"] = provider
        self.text_logger.info(f"LLM Provider: {provider}")

    def save(self):
        """Save the complete log to JSON file"""
        self.log_data["end_time"] = datetime.now().isoformat()
        with open(self.log_file, 'w', encoding='utf-8') as f:
            json.dump(self.log_data, f, indent=2, ensure_ascii=False, default=str)
        self.text_logger.info(f"Log saved to: {self.log_file}")

    def close(self):
        for handler in list(self.text_logger.handlers):
            handler.close()
            self.text_logger.removeHandler(handler)

    def events(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        if event_type is None:
            return list(self.log_data["events"])
        return [e for e in self.log_data["events"] if e["event_type"] == event_type]


# Global logger instance (set when session starts)
_current_logger: Optional[SessionLogger] = None


def get_logger() -> Optional[SessionLogger]:
    """Get the current session logger"""
    return _current_logger


def set_logger(logger: SessionLogger):
    """Set the current session logger"""
    global _current_logger
    _current_logger = logger


def clear_logger():
    """Save and clear the current session logger"""
    global _current_logger
    if _current_logger:
        _current_logger.save()
        _current_logger.close()
    _current_logger = None
