"""Administrative commands over the mention queue.

Coaches can inspect and clear their own queue and switch queueing mode;
configured operators may clear any queue. Every command answers with an
explicit acknowledgement.
"""

from collections.abc import Iterable, Sequence
from datetime import date

from coach_queue.config.logging_config import get_logger
from coach_queue.domain.exceptions import (
    RateLimitError,
    SlackAPIError,
    StoreUnavailableError,
    UnauthorizedActionError,
    UnknownCoachError,
)
from coach_queue.domain.models import Coach, CommandRequest, CommandResult, CommandType
from coach_queue.domain.protocols import ChatClientProtocol, MentionStoreProtocol
from coach_queue.services.mention_classifier import extract_mentioned_ids
from coach_queue.services.toggle_state import QueueToggleState
from coach_queue.use_cases.publish_summary import SummaryPublisher

logger = get_logger(__name__)


def normalize_student(student: str) -> str:
    """Strip Slack decoration from a student argument.

    "<@U123|alice>" becomes "U123", "@alice" becomes "alice".
    """
    mentioned = extract_mentioned_ids(student)
    if mentioned:
        return next(iter(mentioned))
    return student.strip().lstrip("@")


class AdminCommandService:
    """Executes list / clear / clear-all / toggle commands."""

    def __init__(
        self,
        roster: Sequence[Coach],
        store: MentionStoreProtocol,
        chat: ChatClientProtocol,
        toggles: QueueToggleState,
        summaries: SummaryPublisher,
        *,
        summary_channel_id: str = "",
        admin_user_ids: Iterable[str] = (),
    ) -> None:
        self._coaches = {coach.key.lower(): coach for coach in roster}
        self._store = store
        self._chat = chat
        self._toggles = toggles
        self._summaries = summaries
        self._summary_channel_id = summary_channel_id
        self._admin_user_ids = frozenset(admin_user_ids)

    def execute(self, request: CommandRequest) -> CommandResult:
        """Run a command and turn domain errors into user-facing replies."""
        logger.info(
            "admin_command_received",
            command=request.command.value,
            coach=request.coach,
            principal=request.acting_principal_id,
        )
        try:
            if request.command is CommandType.LIST:
                return self.list_queue(request.coach, request.day)
            if request.command is CommandType.CLEAR:
                return self.clear_entry(
                    request.coach,
                    request.student or "",
                    request.day,
                    request.acting_principal_id,
                )
            if request.command is CommandType.CLEAR_ALL:
                return self.clear_all(
                    request.coach, request.confirm, request.acting_principal_id
                )
            return self.toggle_queueing(
                request.coach, request.enabled, request.acting_principal_id
            )
        except UnknownCoachError as exc:
            known = ", ".join(sorted(self._coaches)) or "none"
            return CommandResult(
                text=f"Unknown coach `{exc.coach_key}`. Known coaches: {known}.",
                succeeded=False,
            )
        except UnauthorizedActionError as exc:
            logger.warning(
                "admin_command_denied",
                action=exc.action,
                coach=exc.coach_key,
                principal=exc.principal_id,
            )
            return CommandResult(
                text=f"Sorry, you are not allowed to {exc.action} for this coach.",
                succeeded=False,
            )
        except StoreUnavailableError as exc:
            logger.error(
                "admin_command_store_failed",
                command=request.command.value,
                coach=request.coach,
                error=str(exc),
            )
            return CommandResult(
                text="The queue store is unavailable right now. Please try again shortly.",
                succeeded=False,
            )

    # Commands ---------------------------------------------------------

    def list_queue(self, coach_key: str, day: date | None = None) -> CommandResult:
        coach = self._require_coach(coach_key)
        target_day = day or self._summaries.today()
        summary = self._summaries.build_summary(coach, target_day)
        if summary is None:
            summary = f"Nothing queued for {coach.display_name} on {target_day:%A %Y-%m-%d}."
        hours = self._summaries.calendar.describe_windows(coach)
        return CommandResult(text=f"{summary}\nWorking hours: {hours}")

    def clear_entry(
        self,
        coach_key: str,
        student: str,
        day: date | None,
        acting_principal_id: str,
    ) -> CommandResult:
        coach = self._require_coach(coach_key)
        self.authorize_clear(coach, acting_principal_id)
        if not student.strip():
            return CommandResult(
                text="Please name the student whose entry should be cleared.",
                succeeded=False,
            )

        target = normalize_student(student)
        target_day = day or self._summaries.today()
        record_ids = [
            record.record_id
            for record in self._store.list_records(coach.key, target_day)
            if target in (record.author, record.author_id)
        ]
        if not record_ids:
            return CommandResult(
                text=(
                    f"Nothing to clear: no queued entry from {target} for "
                    f"{coach.display_name} on {target_day:%A %Y-%m-%d}."
                )
            )

        deleted = self._store.delete_records(record_ids)
        logger.info(
            "queue_entry_cleared",
            coach=coach.key,
            student=target,
            day=target_day.isoformat(),
            deleted=deleted,
            principal=acting_principal_id,
        )
        return CommandResult(
            text=f"Cleared {deleted} queued entry for {target} ({coach.display_name}).",
            affected=deleted,
        )

    def clear_all(
        self, coach_key: str, confirm: bool, acting_principal_id: str
    ) -> CommandResult:
        coach = self._require_coach(coach_key)
        self.authorize_clear(coach, acting_principal_id)
        if not confirm:
            return CommandResult(
                text=(
                    f"This removes every queued mention for {coach.display_name}. "
                    "Run the command again with `confirm` to proceed."
                ),
                succeeded=False,
            )

        record_ids = [
            record.record_id for record in self._store.list_records_for_coach(coach.key)
        ]
        if not record_ids:
            return CommandResult(
                text=f"Nothing to clear: the queue for {coach.display_name} is empty."
            )

        deleted = self._store.delete_records(record_ids)
        logger.info(
            "queue_cleared",
            coach=coach.key,
            deleted=deleted,
            principal=acting_principal_id,
        )
        return CommandResult(
            text=f"Cleared {deleted} queued entries for {coach.display_name}.",
            affected=deleted,
        )

    def toggle_queueing(
        self, coach_key: str, enabled: bool | None, acting_principal_id: str
    ) -> CommandResult:
        coach = self._require_coach(coach_key)
        self.authorize_toggle(coach, acting_principal_id)

        new_state = (not self._toggles.is_enabled(coach.key)) if enabled is None else enabled
        self._toggles.set_enabled(coach.key, new_state)

        if new_state:
            text = (
                f"{coach.display_name} is back to working-hours mode: "
                "mentions are queued only outside working hours."
            )
        else:
            text = (
                f"Live mentions for {coach.display_name} are paused: "
                "every mention is queued until switched back."
            )
        self._post_audit_notice(coach, text)
        return CommandResult(text=text, affected=1)

    # Authorization ----------------------------------------------------

    def authorize_clear(self, coach: Coach, principal_id: str) -> None:
        """Coaches may clear their own queue; operators may clear any.

        Raises:
            UnauthorizedActionError: Otherwise
        """
        if principal_id == coach.slack_user_id or principal_id in self._admin_user_ids:
            return
        raise UnauthorizedActionError("clear the queue", principal_id, coach.key)

    def authorize_toggle(self, coach: Coach, principal_id: str) -> None:
        """Only the coach themself may switch queueing mode.

        Raises:
            UnauthorizedActionError: Otherwise
        """
        if principal_id != coach.slack_user_id:
            raise UnauthorizedActionError("toggle queueing", principal_id, coach.key)

    # Helpers ----------------------------------------------------------

    def _require_coach(self, coach_key: str) -> Coach:
        coach = self._coaches.get(coach_key.strip().lower())
        if coach is None:
            raise UnknownCoachError(coach_key)
        return coach

    def _post_audit_notice(self, coach: Coach, text: str) -> None:
        if not self._summary_channel_id:
            return
        try:
            self._chat.send_to_channel(self._summary_channel_id, f":gear: {text}")
        except (SlackAPIError, RateLimitError) as exc:
            logger.warning("toggle_audit_notice_failed", coach=coach.key, error=str(exc))
