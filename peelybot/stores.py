"""
Wallet and referral store interfaces

The engine only needs load-by-user and upsert-by-user; durable storage is
provided by the deployment. In-memory implementations back tests and local runs.
"""

import logging
import threading
from typing import Dict, Optional, Protocol, runtime_checkable

from .errors import ReferralAlreadySet
from .types import WalletRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class WalletStore(Protocol):
    """Custodial wallet records keyed by user id"""

    def load(self, user_id: str) -> Optional[WalletRecord]:
        ...

    def upsert(self, user_id: str, record: WalletRecord) -> None:
        ...

    def find_user_by_referral_id(self, referral_id: str) -> Optional[str]:
        ...


@runtime_checkable
class ReferralStore(Protocol):
    """Referral relationships keyed by the referred user id"""

    def get_referrer_id(self, user_id: str) -> Optional[str]:
        ...

    def set_referrer(self, user_id: str, referrer_id: str) -> None:
        ...

    def get_referral_id(self, user_id: str) -> Optional[str]:
        ...


class InMemoryWalletStore:
    """Thread-safe dict-backed WalletStore"""

    def __init__(self):
        self._records: Dict[str, WalletRecord] = {}
        self._lock = threading.Lock()

    def load(self, user_id: str) -> Optional[WalletRecord]:
        with self._lock:
            return self._records.get(user_id)

    def upsert(self, user_id: str, record: WalletRecord) -> None:
        with self._lock:
            self._records[user_id] = record

    def find_user_by_referral_id(self, referral_id: str) -> Optional[str]:
        with self._lock:
            for user_id, record in self._records.items():
                if record.referral_id == referral_id:
                    return user_id
        return None


class InMemoryReferralStore:
    """
    Thread-safe dict-backed ReferralStore

    Policy: first write wins. Setting the same referrer again is a no-op,
    setting a different one raises ReferralAlreadySet.
    """

    def __init__(self, wallet_store: WalletStore):
        self._wallets = wallet_store
        self._referrers: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_referrer_id(self, user_id: str) -> Optional[str]:
        with self._lock:
            return self._referrers.get(user_id)

    def set_referrer(self, user_id: str, referrer_id: str) -> None:
        with self._lock:
            existing = self._referrers.get(user_id)
            if existing is not None and existing != referrer_id:
                raise ReferralAlreadySet(user_id, existing)
            self._referrers[user_id] = referrer_id

    def get_referral_id(self, user_id: str) -> Optional[str]:
        record = self._wallets.load(user_id)
        return record.referral_id if record else None
