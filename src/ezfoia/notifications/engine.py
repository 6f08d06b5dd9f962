"""Confirmation notifier with template rendering and fire-and-forget dispatch."""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Any

import yaml

from ezfoia.core.config import resolve_config_path
from ezfoia.notifications.models import (
    ConfirmationRequest,
    Notification,
    NotificationChannel,
    NotificationTemplate,
)
from ezfoia.notifications.service import NotificationService
from ezfoia.repositories import resolve

logger = logging.getLogger(__name__)

_DEFAULT_TEMPLATES_PATH = "config/notification_templates.yml"
CONFIRMATION_TEMPLATE = "request_submitted"


class ConfirmationNotifier:
    """Sends the "request submitted" confirmation.

    ``dispatch_confirmation`` schedules delivery and returns immediately;
    delivery errors are logged and never reach the caller.
    """

    def __init__(
        self,
        service: NotificationService,
        templates_path: str | Path | None = None,
    ) -> None:
        self._service = service
        self._templates: dict[str, NotificationTemplate] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._load_templates(resolve_config_path(templates_path or _DEFAULT_TEMPLATES_PATH))

    def _load_templates(self, path: Path) -> None:
        if not path.exists():
            return
        with open(path) as fh:
            data = yaml.safe_load(fh) or {}
        for tmpl_id, tmpl_data in data.get("templates", {}).items():
            self._templates[tmpl_id] = NotificationTemplate(
                id=tmpl_id,
                subject=tmpl_data.get("subject", ""),
                body=tmpl_data.get("body", ""),
                channel=NotificationChannel(tmpl_data.get("channel", "email")),
            )

    @property
    def templates(self) -> dict[str, NotificationTemplate]:
        return dict(self._templates)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def build_confirmation(self, request: ConfirmationRequest) -> Notification:
        context = {
            "name": request.name,
            "agency_name": request.agency_name,
            "record_type": request.record_type,
            "request_id": request.request_id,
            "tracking_id": request.tracking_id,
        }
        template = self._templates.get(CONFIRMATION_TEMPLATE)
        if template:
            subject = self._render(template.subject, context)
            body = self._render(template.body, context)
            channel = template.channel
        else:
            subject = "Your FOIA Request Has Been Submitted"
            body = f"Tracking ID: {request.tracking_id}"
            channel = NotificationChannel.EMAIL

        return Notification(
            request_id=request.request_id,
            recipient=request.recipient,
            subject=subject,
            body=body,
            channel=channel,
            template_id=CONFIRMATION_TEMPLATE,
            metadata=context,
        )

    async def send_confirmation(self, request: ConfirmationRequest) -> Notification | None:
        """Deliver the confirmation now. Returns None when delivery failed."""
        notification = self.build_confirmation(request)
        try:
            return await resolve(self._service.send(notification))
        except Exception:
            logger.exception(
                "Confirmation for request %s to %s failed",
                request.request_id, request.recipient,
            )
            return None

    def dispatch_confirmation(self, request: ConfirmationRequest) -> asyncio.Task[Any]:
        """Schedule delivery on the running loop without awaiting it."""
        task = asyncio.create_task(self.send_confirmation(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _render(self, template_str: str, context: dict[str, Any]) -> str:
        """Single-pass ``{key}`` substitution; unknown placeholders are kept."""
        str_context = {k: str(v) for k, v in context.items()}

        def _replace(m: re.Match) -> str:
            return str_context.get(m.group(1), m.group(0))

        return re.sub(r"\{(\w+)\}", _replace, template_str)
