"""
Identity Service - Core business logic for identity resolution
Finds the clusters touched by an observation, merges them under the oldest
primary, records new information as a secondary contact and builds the
consolidated view. Every attempt runs in one transaction under cluster locks.
"""

import logging
from typing import Iterable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from config import settings
from database import DatabaseManager, db_manager
from models.contact import Contact, LinkPrecedence
from schemas.identify import IdentifyRequest, IdentifyResponse, ContactResponse
from .cluster_lock import ClusterLockManager, build_lock_keys
from .contact_store import ContactStore
from .exceptions import (
    ConcurrentClusterConflictError,
    InvalidInputError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


class IdentityService:
    """
    Core service for identity resolution
    Handles all business rules for linking customer contacts
    """

    def __init__(
        self,
        database: Optional[DatabaseManager] = None,
        cluster_locks: Optional[ClusterLockManager] = None,
        max_attempts: Optional[int] = None
    ):
        self.db_manager = database or db_manager
        self.cluster_locks = cluster_locks or ClusterLockManager(
            use_advisory_locks=settings.USE_ADVISORY_LOCKS
        )
        self.max_attempts = max(1, max_attempts or settings.RESOLVE_MAX_ATTEMPTS)

    async def identify_contact(self, request: IdentifyRequest) -> IdentifyResponse:
        """Resolve a validated /identify request into the API response envelope"""
        contact = await self.resolve(request.email, request.phoneNumber)
        return IdentifyResponse(contact=contact)

    async def resolve(self, email: Optional[str], phone: Optional[str]) -> ContactResponse:
        """
        Main orchestration method for identity resolution

        Retries the whole operation when the implicated clusters change
        between the unlocked lookup and lock acquisition.
        """
        email = email or None
        phone = phone or None
        if email is None and phone is None:
            raise InvalidInputError("Either email or phoneNumber must be provided")

        last_conflict = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._resolve_once(email, phone)
            except ConcurrentClusterConflictError as e:
                last_conflict = e
                logger.warning(
                    f"Cluster set changed during resolve (attempt {attempt}/{self.max_attempts}): "
                    f"expected={sorted(e.expected_keys or ())} actual={sorted(e.actual_keys or ())}"
                )
            except SQLAlchemyError as e:
                logger.error(f"Contact store failure while resolving identity: {e}")
                raise StoreUnavailableError("Contact store is unavailable") from e
            except OSError as e:
                logger.error(f"Contact store connection failure while resolving identity: {e}")
                raise StoreUnavailableError("Contact store is unavailable") from e

        raise ConcurrentClusterConflictError(
            f"Implicated clusters kept changing after {self.max_attempts} attempts",
            expected_keys=last_conflict.expected_keys,
            actual_keys=last_conflict.actual_keys
        )

    async def _resolve_once(self, email: Optional[str], phone: Optional[str]) -> ContactResponse:
        # Unlocked lookup only decides which locks to take
        async with self.db_manager.get_session() as session:
            matches = await ContactStore(session).find_by_email_or_phone(email, phone)
        lock_keys = build_lock_keys(email, phone, self._primary_ids(matches))

        async with self.cluster_locks.hold(lock_keys):
            async with self.db_manager.get_session() as session:
                await self.cluster_locks.acquire_advisory(session, lock_keys)
                store = ContactStore(session)

                matches = await store.find_by_email_or_phone(email, phone)
                current_keys = build_lock_keys(email, phone, self._primary_ids(matches))
                if current_keys != lock_keys:
                    raise ConcurrentClusterConflictError(
                        "Implicated clusters changed before locks were acquired",
                        expected_keys=lock_keys,
                        actual_keys=current_keys
                    )

                return await self._reconcile(store, matches, email, phone)

    async def _reconcile(
        self,
        store: ContactStore,
        matches: List[Contact],
        email: Optional[str],
        phone: Optional[str]
    ) -> ContactResponse:
        """Run the match, merge and new-information steps against a locked transaction"""
        if not matches:
            contact = await store.create(email, phone, LinkPrecedence.PRIMARY)
            logger.info(f"Created primary contact {contact.id}")
            return self._build_consolidated_response(contact.id, [contact])

        primary_ids = self._primary_ids(matches)
        related = await store.find_by_ids_or_linked_to(primary_ids)

        primary = await self._merge_clusters(store, related)

        cluster = await store.find_by_ids_or_linked_to([primary.id])

        if self._has_new_information(cluster, email, phone):
            secondary = await store.create(email, phone, LinkPrecedence.SECONDARY, linked_id=primary.id)
            logger.info(f"Created secondary contact {secondary.id} linked to primary {primary.id}")
            cluster = await store.find_by_ids_or_linked_to([primary.id])

        return self._build_consolidated_response(primary.id, cluster)

    async def _merge_clusters(self, store: ContactStore, related: List[Contact]) -> Contact:
        """
        Collapse every loaded cluster under the oldest primary

        Newer primaries are demoted and every secondary is re-pointed at the
        surviving primary so no secondary references another secondary.
        Rows that already carry the right linkage are left untouched.
        """
        primaries = [c for c in related if c.is_primary()]
        secondaries = [c for c in related if c.is_secondary()]

        if primaries:
            survivor = primaries[0]
        else:
            # Referenced primary is soft-deleted; the oldest survivor takes over
            survivor = related[0]
            secondaries.remove(survivor)
            await store.update_linkage(survivor.id, LinkPrecedence.PRIMARY, None)
            logger.info(f"Promoted contact {survivor.id} to primary; its former primary is deleted")

        demoted = [c.id for c in primaries[1:]]
        for contact_id in demoted:
            await store.update_linkage(contact_id, LinkPrecedence.SECONDARY, survivor.id)

        repointed = []
        for contact in secondaries:
            if contact.linked_id != survivor.id:
                await store.update_linkage(contact.id, LinkPrecedence.SECONDARY, survivor.id)
                repointed.append(contact.id)

        if demoted:
            logger.info(
                f"Merged clusters into primary {survivor.id}: demoted={demoted} repointed={repointed}"
            )

        return survivor

    def _primary_ids(self, contacts: Iterable[Contact]) -> Set[int]:
        """Primary id of the cluster of each contact"""
        return {c.primary_id() for c in contacts if c.primary_id() is not None}

    def _has_new_information(
        self,
        cluster: List[Contact],
        email: Optional[str],
        phone: Optional[str]
    ) -> bool:
        """
        Check if the request carries an email or phone number the cluster lacks
        """
        all_emails = {c.email for c in cluster if c.email}
        all_phones = {c.phone_number for c in cluster if c.phone_number}

        has_new_email = bool(email) and email not in all_emails
        has_new_phone = bool(phone) and phone not in all_phones

        return has_new_email or has_new_phone

    def _build_consolidated_response(self, primary_id: int, cluster: List[Contact]) -> ContactResponse:
        """
        Build the consolidated view of a cluster

        The primary's email and phone come first; the remaining members follow
        in the cluster's oldest-first order with duplicates dropped.
        """
        emails: List[str] = []
        phone_numbers: List[str] = []
        secondary_ids: List[int] = []

        seen_emails: Set[str] = set()
        seen_phones: Set[str] = set()

        def add(contact: Contact):
            if contact.email and contact.email not in seen_emails:
                emails.append(contact.email)
                seen_emails.add(contact.email)
            if contact.phone_number and contact.phone_number not in seen_phones:
                phone_numbers.append(contact.phone_number)
                seen_phones.add(contact.phone_number)

        primary = next((c for c in cluster if c.id == primary_id), None)
        if primary is not None:
            add(primary)

        for contact in cluster:
            if contact.id == primary_id:
                continue
            secondary_ids.append(contact.id)
            add(contact)

        return ContactResponse(
            primaryContactId=primary_id,
            emails=emails,
            phoneNumbers=phone_numbers,
            secondaryContactIds=secondary_ids
        )


# Global service instance
identity_service = IdentityService()
