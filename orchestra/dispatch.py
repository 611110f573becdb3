from __future__ import annotations

import logging

from orchestra.api_client import BackendClient
from orchestra.exceptions import DispatchFailure, DispatchTimeout
from orchestra.models import AutomationTrigger, DispatchOutcome, DispatchStatus, SubTrigger
from orchestra.notifications import Notifier
from orchestra.schemas import ApiResponse, StudioAction
from orchestra.tracker import ExecutionTracker

logger = logging.getLogger(__name__)

GYM_NOTES = "gym-notes"
STUDIO_MODE = "studio-mode"
STUDIO_DEFAULT_ACTION = StudioAction.OPEN_SESSION.value


class AutomationDispatcher:
    def __init__(
        self,
        client: BackendClient,
        tracker: ExecutionTracker,
        notifier: Notifier,
    ) -> None:
        self.client = client
        self.tracker = tracker
        self.notifier = notifier

    async def dispatch(
        self,
        trigger: AutomationTrigger,
        sub_trigger: SubTrigger | None = None,
    ) -> DispatchOutcome:
        """Start an execution and send exactly one backend request for it.

        Never raises: failures end up as a failed execution plus a notification.
        """
        if trigger.requires_sub_trigger and sub_trigger is None:
            choices = ", ".join(item.name for item in trigger.sub_triggers)
            message = f"{trigger.name} needs a choice: {choices}."
            self.notifier.error("Choose an option", message)
            return DispatchOutcome(
                trigger_id=trigger.id,
                status=DispatchStatus.REJECTED,
                message=message,
            )

        label = trigger.label(sub_trigger)
        execution_id = self.tracker.begin_execution(
            trigger.id,
            f"{label} Activated",
            trigger.description,
        )
        self.notifier.info("🎻 Orchestra Activated", f"{label} automation triggered!")

        try:
            response = await self._send(trigger, sub_trigger, label)
            if not response.success:
                raise DispatchFailure(response.message or "backend reported failure")
        except DispatchTimeout as exc:
            return self._failed(trigger, execution_id, label, f"Connection error: {exc}", timeout=True)
        except (DispatchFailure, ValueError) as exc:
            return self._failed(trigger, execution_id, label, f"Connection error: {exc}", timeout=False)

        message = response.message or f"{label} automation started."
        self.notifier.success(f"✅ {label}", message)
        return DispatchOutcome(
            trigger_id=trigger.id,
            status=DispatchStatus.DISPATCHED,
            message=message,
            execution_id=execution_id,
        )

    async def _send(
        self,
        trigger: AutomationTrigger,
        sub_trigger: SubTrigger | None,
        label: str,
    ) -> ApiResponse:
        if trigger.id == GYM_NOTES and sub_trigger is not None:
            return await self.client.trigger_workout(sub_trigger.id)
        if trigger.id == STUDIO_MODE:
            return await self.client.trigger_studio(STUDIO_DEFAULT_ACTION)
        return await self.client.trigger_generic(label, trigger.command)

    def _failed(
        self,
        trigger: AutomationTrigger,
        execution_id: str,
        label: str,
        reason: str,
        *,
        timeout: bool,
    ) -> DispatchOutcome:
        logger.warning("Dispatch of %s failed: %s", trigger.id, reason)
        self.tracker.fail_execution(execution_id, reason)
        if timeout:
            self.notifier.error(
                "Automation Timed Out",
                f"{label} did not respond in time - check if the backend is running.",
            )
        else:
            self.notifier.error(
                "Automation Failed",
                f"{label} could not be started - check the backend connection.",
            )
        return DispatchOutcome(
            trigger_id=trigger.id,
            status=DispatchStatus.FAILED,
            message=reason,
            execution_id=execution_id,
        )
