# callwave/services/batch_service.py
"""
Batch campaign lifecycle: launch, reconciliation and status polling.

Flow:
1. ``launch_campaign`` claims the Draft campaign as Launched, submits the job
   to the voice API and stores a BatchCall row.
2. ``BatchPoller.poll`` is scheduled in the background and fetches the batch
   every ``interval`` seconds, at most ``max_polls`` times, reconciling the
   batch, its recipients and their conversations on every pass.
3. ``check_batch_status`` is the one-shot variant used on demand.

All row writes are idempotent, so the poller, the webhook and manual checks
may touch the same batch at the same time.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from sqlalchemy.orm import Session

from callwave.core.config import MAX_POLLS, POLL_INTERVAL_SECONDS
from callwave.core.exceptions import ConfigurationError, LaunchConflictError, VoiceAPIError
from callwave.db.session import get_db_session
from callwave.db.upsert import upsert
from callwave.models.campaign import BatchCall, BatchStatus, Campaign, CampaignStatus
from callwave.models.recipient import Recipient
from callwave.schemas.campaign import LaunchRequest
from callwave.services.campaign_status import sync_campaign_status
from callwave.services.conversation_service import upsert_conversation_placeholder
from callwave.services.voice_client import VoiceClient

log = logging.getLogger("callwave.batches")

TERMINAL_FAILURE_STATUSES = frozenset({BatchStatus.FAILED.value, BatchStatus.CANCELLED.value})

RECIPIENT_MUTABLE_COLUMNS = [
    "status", "conversation_id", "conversation_initiation_client_data",
    "phone_number", "contact_name",
]


@dataclass
class LaunchResult:
    campaign_id: str
    external_response: Dict[str, Any]
    batch_id: Optional[str] = None
    batch_saved: bool = False


@dataclass
class PollResult:
    batch_id: str
    completed: bool
    poll_count: int
    last_status: Optional[str] = None


@dataclass
class ReconcileStats:
    recipients_seen: int = 0
    recipients_written: int = 0
    conversations_seen: int = 0
    errors: int = 0
    failed_recipients: list = field(default_factory=list)


# ────────────────────────────────────────────
# Launch
# ────────────────────────────────────────────

def claim_campaign(db: Session, campaign_id: str, user_id: str) -> bool:
    """Move a Draft campaign to Launched in one conditional UPDATE. False if it was not Draft."""
    claimed = db.query(Campaign).filter(
        Campaign.campaign_id == campaign_id,
        Campaign.user_id == user_id,
        Campaign.status == CampaignStatus.DRAFT
    ).update(
        {Campaign.status: CampaignStatus.LAUNCHED, Campaign.launched_at: datetime.utcnow()},
        synchronize_session=False
    )
    db.commit()
    return claimed == 1


def release_campaign(db: Session, campaign_id: str, user_id: str) -> None:
    """Put a claimed campaign back to Draft after the voice API refused the job"""
    try:
        db.query(Campaign).filter(
            Campaign.campaign_id == campaign_id,
            Campaign.user_id == user_id,
            Campaign.status == CampaignStatus.LAUNCHED
        ).update(
            {Campaign.status: CampaignStatus.DRAFT, Campaign.launched_at: None},
            synchronize_session=False
        )
        db.commit()
    except Exception as e:
        db.rollback()
        log.error(f"❌ Error releasing campaign {campaign_id}: {e}")


async def launch_campaign(
    db: Session,
    voice_client: VoiceClient,
    campaign: Campaign,
    request: LaunchRequest,
    user_id: str
) -> LaunchResult:
    """
    Claim ``campaign``, submit it to the voice API and persist the returned batch.

    Raises:
        LaunchConflictError: the campaign is no longer Draft (nothing is sent)
        ConfigurationError: voice API key missing (campaign goes back to Draft)
        VoiceAPIError: the API rejected the job (campaign goes back to Draft)

    Once the API has accepted the job, database errors are logged and
    reported through ``LaunchResult.batch_saved``; the remote job keeps running.
    """
    campaign_id = campaign.campaign_id
    call_name = request.call_name or campaign.name
    agent_id = request.agent_id or campaign.agent_id
    phone_number_id = request.phone_number_id or campaign.phone_number_id
    scheduled_time_unix = request.scheduled_time_unix or int(time.time())

    if not claim_campaign(db, campaign_id, user_id):
        log.warning(f"⚠️ Campaign {campaign_id} was already launched")
        raise LaunchConflictError(f"Campaign {campaign_id} is not a Draft")

    log.info(f"🚀 Launching campaign {campaign_id} ({call_name}) to {len(request.recipients)} recipients")

    try:
        result = await voice_client.submit_batch(
            call_name=call_name,
            agent_id=agent_id,
            phone_number_id=phone_number_id,
            scheduled_time_unix=scheduled_time_unix,
            recipients=request.recipients
        )
    except (ConfigurationError, VoiceAPIError):
        release_campaign(db, campaign_id, user_id)
        raise
    log.info(f"✅ Batch accepted by voice API: {result.get('id') or result.get('batch_id')}")

    launch = LaunchResult(campaign_id=campaign_id, external_response=result)

    batch_id = result.get("id") or result.get("batch_id")
    if not batch_id:
        log.warning(f"⚠️ Voice API returned no batch ID for campaign {campaign_id}")
        return launch
    launch.batch_id = batch_id

    try:
        db.add(BatchCall(
            user_id=user_id,
            campaign_id=campaign_id,
            batch_id=batch_id,
            batch_name=result.get("name") or call_name,
            agent_id=agent_id,
            phone_number_id=phone_number_id,
            scheduled_time_unix=result.get("scheduled_time_unix") or scheduled_time_unix,
            created_at_unix=result.get("created_at_unix") or int(time.time()),
            total_calls_scheduled=result.get("total_calls_scheduled") or len(request.recipients),
            total_calls_dispatched=result.get("total_calls_dispatched") or 0,
            status=result.get("status") or BatchStatus.PENDING.value
        ))
        db.commit()
        launch.batch_saved = True
        log.info(f"💾 Batch {batch_id} saved for campaign {campaign_id}")
    except Exception as e:
        db.rollback()
        log.error(f"❌ Error saving batch {batch_id} (remote job is already running): {e}")

    return launch


# ────────────────────────────────────────────
# Reconciliation
# ────────────────────────────────────────────

def update_batch_row(db: Session, batch_id: str, batch_data: Dict[str, Any], user_id: Optional[str] = None) -> int:
    """Copy status/counters from an API response onto the BatchCall row"""
    query = db.query(BatchCall).filter(BatchCall.batch_id == batch_id)
    if user_id:
        query = query.filter(BatchCall.user_id == user_id)

    values = {
        "status": batch_data.get("status"),
        "updated_at": datetime.utcnow(),
    }
    if batch_data.get("total_calls_dispatched") is not None:
        values["total_calls_dispatched"] = batch_data["total_calls_dispatched"]
    if batch_data.get("total_calls_scheduled") is not None:
        values["total_calls_scheduled"] = batch_data["total_calls_scheduled"]
    if batch_data.get("last_updated_at_unix") is not None:
        values["last_updated_at_unix"] = batch_data["last_updated_at_unix"]

    updated = query.update(values, synchronize_session=False)
    db.commit()
    return updated


def reconcile_recipient(
    db: Session,
    batch_id: str,
    user_id: str,
    campaign_id: Optional[str],
    recipient: Dict[str, Any]
) -> None:
    """
    Materialize one recipient from a batch response.

    Writes the conversation placeholder first (when the call has started) so
    the recipient never points at a missing conversation.
    """
    recipient_id = recipient.get("id")
    if not recipient_id:
        raise ValueError("Recipient without ID in batch response")

    initiation_data = recipient.get("conversation_initiation_client_data")
    dynamic_variables = (initiation_data or {}).get("dynamic_variables") if isinstance(initiation_data, dict) else None
    contact_name = recipient.get("contact_name") or (dynamic_variables or {}).get("name")
    conversation_id = recipient.get("conversation_id")

    if conversation_id:
        upsert_conversation_placeholder(
            db,
            conversation_id=conversation_id,
            user_id=user_id,
            status=recipient.get("status"),
            campaign_id=campaign_id,
            batch_id=batch_id,
            external_recipient_id=recipient_id,
            phone_number=recipient.get("phone_number"),
            contact_name=contact_name,
            dynamic_variables=dynamic_variables
        )

    upsert(
        db,
        Recipient,
        {
            "user_id": user_id,
            "batch_id": batch_id,
            "external_recipient_id": recipient_id,
            "phone_number": recipient.get("phone_number"),
            "contact_name": contact_name,
            "status": recipient.get("status"),
            "conversation_id": conversation_id,
            "conversation_initiation_client_data": initiation_data,
        },
        conflict_columns=["batch_id", "external_recipient_id"],
        update_columns=RECIPIENT_MUTABLE_COLUMNS
    )
    db.commit()


def reconcile_batch(db: Session, batch_id: str, user_id: str, batch_data: Dict[str, Any]) -> ReconcileStats:
    """
    Apply one batch API response to the database.

    Each write is independent: a failing row is rolled back and logged and the
    remaining rows are still processed.
    """
    stats = ReconcileStats()

    try:
        if not update_batch_row(db, batch_id, batch_data, user_id=user_id):
            log.warning(f"⚠️ Batch {batch_id} not found for user {user_id}")
    except Exception as e:
        db.rollback()
        stats.errors += 1
        log.error(f"❌ Error updating batch {batch_id}: {e}")

    sync_campaign_status(db, batch_id, batch_data.get("status"), user_id=user_id)

    recipients = batch_data.get("recipients")
    if not isinstance(recipients, list):
        log.debug(f"No recipients data in batch {batch_id} response")
        return stats

    row = db.query(BatchCall.campaign_id).filter(
        BatchCall.batch_id == batch_id,
        BatchCall.user_id == user_id
    ).first()
    campaign_id = row.campaign_id if row else None

    log.debug(f"Processing {len(recipients)} recipients for batch {batch_id}")
    for recipient in recipients:
        stats.recipients_seen += 1
        if recipient.get("conversation_id"):
            stats.conversations_seen += 1
        try:
            reconcile_recipient(db, batch_id, user_id, campaign_id, recipient)
            stats.recipients_written += 1
        except Exception as e:
            db.rollback()
            stats.errors += 1
            stats.failed_recipients.append(recipient.get("id"))
            log.error(f"❌ Error saving recipient {recipient.get('id')} of batch {batch_id}: {e}")

    return stats


async def check_batch_status(db: Session, voice_client: VoiceClient, batch_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    One-shot status refresh: fetch the batch, update its row and the campaign.

    Raises:
        VoiceAPIError / ConfigurationError from the voice client
    """
    log.info(f"🔎 Fetching batch status for {batch_id}")
    batch_data = await voice_client.get_batch(batch_id)

    try:
        update_batch_row(db, batch_id, batch_data, user_id=user_id)
    except Exception as e:
        db.rollback()
        log.error(f"❌ Error updating batch {batch_id}: {e}")

    sync_campaign_status(db, batch_id, batch_data.get("status"), user_id=user_id)
    return batch_data


# ────────────────────────────────────────────
# Polling
# ────────────────────────────────────────────

class BatchPoller:
    """
    Poll one batch until it completes, fails, is cancelled or the cap is hit.

    Fixed interval, no backoff. One instance is shared by the process; it
    refuses to run two loops for the same batch at once.
    """

    def __init__(
        self,
        voice_client: VoiceClient,
        session_factory: Optional[Callable[[], Session]] = None,
        interval: Optional[float] = None,
        max_polls: Optional[int] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None
    ):
        """
        Args:
            voice_client: Client used for every status fetch
            session_factory: Session maker for the loop's own sessions
            interval: Seconds between polls (POLL_INTERVAL_SECONDS)
            max_polls: Hard cap on polls (MAX_POLLS)
            sleep: Awaitable sleep, ``asyncio.sleep`` by default
        """
        self.voice_client = voice_client
        self.session_factory = session_factory
        self.interval = POLL_INTERVAL_SECONDS if interval is None else interval
        self.max_polls = MAX_POLLS if max_polls is None else max_polls
        self._sleep = sleep or asyncio.sleep
        self._active: Set[str] = set()

    def is_polling(self, batch_id: str) -> bool:
        return batch_id in self._active

    @property
    def active_count(self) -> int:
        return len(self._active)

    async def poll(self, batch_id: str, user_id: str) -> PollResult:
        """
        Run the loop to completion.

        ``poll_count`` is the number of status fetches issued, including the
        one that returned a terminal status and ones that raised.
        """
        if batch_id in self._active:
            log.warning(f"⚠️ Batch {batch_id} is already being polled, skipping")
            return PollResult(batch_id=batch_id, completed=False, poll_count=0)

        self._active.add(batch_id)
        try:
            return await self._run(batch_id, user_id)
        finally:
            self._active.discard(batch_id)

    async def _run(self, batch_id: str, user_id: str) -> PollResult:
        log.info(f"🔄 Starting batch status polling for {batch_id}")
        completed = False
        poll_count = 0
        last_status = None

        while poll_count < self.max_polls:
            poll_count += 1
            log.info(f"📡 Polling attempt {poll_count} for batch {batch_id}")

            try:
                batch_data = await self.voice_client.get_batch(batch_id)
                last_status = batch_data.get("status")
                log.info(f"📊 Batch {batch_id} status: {last_status}")

                with get_db_session(self.session_factory) as db:
                    stats = reconcile_batch(db, batch_id, user_id, batch_data)
                if stats.errors:
                    log.warning(f"⚠️ Batch {batch_id}: {stats.errors} write errors this pass")

                if last_status == BatchStatus.COMPLETED.value:
                    completed = True
                    log.info(f"✅ Batch {batch_id} completed after {poll_count} polls")
                    break
                if last_status in TERMINAL_FAILURE_STATUSES:
                    log.warning(f"🛑 Batch {batch_id} {last_status}, stopping polling")
                    break

            except Exception as e:
                log.error(f"❌ Error during polling iteration {poll_count} for batch {batch_id}: {e}")

            if poll_count < self.max_polls:
                await self._sleep(self.interval)

        if not completed and poll_count >= self.max_polls and last_status not in TERMINAL_FAILURE_STATUSES:
            log.warning(f"⚠️ Max polling attempts ({self.max_polls}) reached for batch {batch_id}")

        return PollResult(batch_id=batch_id, completed=completed, poll_count=poll_count, last_status=last_status)

    async def poll_in_background(self, batch_id: str, user_id: str) -> None:
        """
        Fire-and-forget entry point for ``BackgroundTasks``.

        The result is only logged; nobody awaits it.
        """
        try:
            result = await self.poll(batch_id, user_id)
            log.info(f"🏁 Background polling for {batch_id} finished: completed={result.completed} polls={result.poll_count}")
        except Exception as e:
            log.error(f"❌ Background polling for {batch_id} crashed: {e}")
