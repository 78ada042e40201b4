"""
Per-user digest generation: fetch, dedupe, rank, truncate, summarize,
persist and deliver.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import UTC, datetime

from newsdigest.analyze import Summarizer, truncate_content
from newsdigest.deliver import EmailSender, SendResult
from newsdigest.ingest import SourceFetcher
from newsdigest.logging_config import get_logger
from newsdigest.models import (
    Digest,
    DigestConfiguration,
    DigestStatus,
    RankedItem,
)
from newsdigest.rank import dedupe, rank
from newsdigest.storage.db import Database

logger = get_logger("assembler")


class DigestAssembler:
    """Orchestrates one digest run for one user."""

    def __init__(
        self,
        db: Database,
        fetcher: SourceFetcher,
        summarizer: Summarizer,
        email_sender: EmailSender,
        summary_timeout: float = 30.0,
        delivery_timeout: float = 30.0,
        max_workers: int = 4,
    ):
        self.db = db
        self.fetcher = fetcher
        self.summarizer = summarizer
        self.email_sender = email_sender
        self.summary_timeout = summary_timeout
        self.delivery_timeout = delivery_timeout
        self.max_workers = max_workers

    def select_items(
        self,
        user_id: str,
        keywords: list[str],
        config: DigestConfiguration,
        now: datetime,
    ) -> list[RankedItem]:
        """Fetch, dedupe and rank candidates, then keep the top `item_cap`."""
        fetched = self.fetcher.fetch_for_user(user_id)
        unique = dedupe(fetched)
        ranked = rank(unique, keywords, now=now)
        selected = ranked[: config.digest_length.item_cap]
        logger.info(
            f"User {user_id}: {len(fetched)} fetched, {len(unique)} unique, "
            f"{len(selected)} selected ({config.digest_length.value})"
        )
        return selected

    def generate_for_user(
        self,
        user_id: str,
        app_base_url: str,
        now: datetime | None = None,
    ) -> Digest:
        """
        Build, persist and deliver a digest for a user.

        Raises UserNotFoundError for an unknown user. Summarizer and
        delivery failures never raise: they degrade the summary or mark
        the digest FAILED. Any other error marks the digest FAILED and
        propagates.
        """
        now = now or datetime.now(UTC)

        user = self.db.get_user(user_id)
        keywords = self.db.get_keywords(user_id)
        config = self.db.get_preferences(user_id) or DigestConfiguration()
        delivery_email = self.db.get_primary_email(user_id)

        selected = self.select_items(user_id, keywords, config, now)

        digest_id = self.db.create_digest(user_id, generated_at=now)
        try:
            self._store_items(digest_id, selected, config)
            self._finish(digest_id, user_id, user.name, delivery_email, app_base_url, now)
        except Exception as exc:
            logger.error(f"Digest {digest_id} aborted, marking it failed: {exc}")
            self.db.update_digest_status(digest_id, DigestStatus.FAILED)
            raise

        return self.db.get_digest(digest_id)

    def _finish(
        self,
        digest_id: str,
        user_id: str,
        user_name: str | None,
        delivery_email: str | None,
        app_base_url: str,
        now: datetime,
    ) -> None:
        """Deliver a stored digest and settle its status as SENT or FAILED."""
        if delivery_email is None:
            logger.warning(f"User {user_id} has no primary delivery email; digest {digest_id} not sent")
            self.db.update_digest_status(digest_id, DigestStatus.FAILED)
            return

        digest = self.db.get_digest(digest_id)
        send_result = self._deliver(delivery_email, digest, user_name, app_base_url)
        if send_result.success:
            self.db.update_digest_status(
                digest_id,
                DigestStatus.SENT,
                sent_at=now,
                email_id=send_result.email_id,
            )
        else:
            logger.error(f"Delivery of digest {digest_id} failed: {send_result.error}")
            self.db.update_digest_status(digest_id, DigestStatus.FAILED)

    def _store_items(
        self,
        digest_id: str,
        items: list[RankedItem],
        config: DigestConfiguration,
    ) -> list[str]:
        """Summarize and persist every item concurrently; returns item ids in rank order."""
        if not items:
            return []

        summary_pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="summary")
        try:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="digest-item") as executor:
                futures = [
                    executor.submit(
                        self._store_item,
                        summary_pool,
                        digest_id,
                        position,
                        item,
                        config,
                    )
                    for position, item in enumerate(items)
                ]
                return [future.result() for future in futures]
        finally:
            # Timed-out summaries may still be running; don't wait for them
            summary_pool.shutdown(wait=False, cancel_futures=True)

    def _store_item(
        self,
        summary_pool: ThreadPoolExecutor,
        digest_id: str,
        position: int,
        item: RankedItem,
        config: DigestConfiguration,
    ) -> str:
        summary = self._summarize(summary_pool, item, config)
        return self.db.add_digest_item(digest_id, item, summary=summary, position=position)

    def _summarize(
        self,
        summary_pool: ThreadPoolExecutor,
        item: RankedItem,
        config: DigestConfiguration,
    ) -> str:
        """Summary for one item, falling back to truncated content on any failure."""
        future: Future[str] = summary_pool.submit(
            self.summarizer.summarize,
            title=item.title,
            content=item.content,
            language=config.language,
            depth=config.summary_depth,
            url=item.url,
        )
        try:
            return future.result(timeout=self.summary_timeout)
        except FutureTimeoutError:
            logger.warning(f"Summary timed out after {self.summary_timeout}s: {item.title[:50]}")
        except Exception as exc:
            logger.warning(f"Summary failed, using truncated content: {item.title[:50]} - {exc}")
        return truncate_content(item.content)

    def _deliver(
        self,
        to: str,
        digest: Digest,
        user_name: str | None,
        app_base_url: str,
    ) -> SendResult:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="delivery")
        try:
            future = executor.submit(
                self.email_sender.send_digest,
                to=to,
                digest=digest,
                user_name=user_name,
                app_base_url=app_base_url,
            )
            return future.result(timeout=self.delivery_timeout)
        except FutureTimeoutError:
            return SendResult(success=False, error=f"Delivery timed out after {self.delivery_timeout}s")
        except Exception as exc:
            return SendResult(success=False, error=str(exc))
        finally:
            executor.shutdown(wait=False)
