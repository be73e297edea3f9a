from __future__ import annotations

import logging
import time
from typing import Callable, Final

from tfvc_blame.exceptions import HandshakeTimeout, ProjectLevelAnnotationFailure
from tfvc_blame.masking import mask
from tfvc_blame.models import Credentials
from tfvc_blame.protocol.channel import LineChannel
from tfvc_blame.protocol.classifier import is_project_failure
from tfvc_blame.protocol.variants import ProtocolVariant

READINESS_ATTEMPTS: Final[int] = 10
READINESS_PAUSE_SECONDS: Final[float] = 0.1


class HandshakeDriver:
    """Runs the fixed opening exchange before any file is requested."""

    def __init__(
        self,
        channel: LineChannel,
        variant: ProtocolVariant,
        *,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], None] = time.sleep,
        attempts: int = READINESS_ATTEMPTS,
        pause_seconds: float = READINESS_PAUSE_SECONDS,
    ) -> None:
        self._channel = channel
        self._variant = variant
        self._logger = logger or logging.getLogger(__name__)
        self._sleep = sleep
        self._attempts = attempts
        self._pause_seconds = pause_seconds

    def wait_until_ready(self) -> str:
        for attempt in range(self._attempts):
            line = self._channel.read_line()
            if line is None:
                raise HandshakeTimeout("The annotate tool closed its output before becoming ready")
            if line.strip():
                self._logger.debug("annotate tool ready: %s", line)
                return line
            if attempt + 1 < self._attempts:
                self._sleep(self._pause_seconds)
        raise HandshakeTimeout(
            f"The annotate tool did not become ready after {self._attempts} attempts"
        )

    def _credential_lines(self, credentials: Credentials) -> list[str]:
        lines = [credentials.username, credentials.password]
        if self._variant.sends_personal_access_token:
            lines.append(credentials.personal_access_token)
        return lines

    def run(self, credentials: Credentials) -> None:
        self.wait_until_ready()
        self._logger.debug(
            "sending credentials: username=%s password=%s token=%s",
            credentials.username or "<anonymous>",
            mask(credentials.password),
            mask(credentials.personal_access_token),
        )
        self._channel.write_lines(self._credential_lines(credentials))
        ack = self._channel.read_line()
        if ack is None:
            raise ProjectLevelAnnotationFailure("the annotate tool closed its output during the handshake")
        self._logger.debug("annotate tool acknowledged credentials: %s", ack)
        if not self._variant.sends_collection_uri:
            return
        if not credentials.collection_uri:
            self._logger.warning(
                "No collection URI configured; the annotate tool falls back to the mapped workspace"
            )
        self._channel.write_line(credentials.collection_uri)
        ready = self._channel.read_line()
        if ready is None:
            raise ProjectLevelAnnotationFailure("the annotate tool closed its output during the handshake")
        if is_project_failure(ready, self._variant):
            detail = self._channel.read_error_line() or ""
            raise ProjectLevelAnnotationFailure(detail)
        self._logger.debug("annotate tool ready for paths: %s", ready)
