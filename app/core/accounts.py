"""
Account Manager.

Owns every account balance. All credits and debits (deposits, withdrawals,
wager and room settlements) go through `apply_delta`, which never lets a
balance drop below zero.
"""

import re
from typing import List, Optional, Tuple

from app.config import LedgerConfig, settings
from app.core.database import Database
from app.core.exceptions import InsufficientFunds, InvalidArgument, account_not_found
from app.core.logger import get_logger
from app.core.models import Account, BalanceChange, LedgerEntry

logger = get_logger("accounts")

DISPLAY_NAME_PATTERN = re.compile(r"^[\w .\-]+$")


class AccountManager:
    """Creates and looks up accounts and applies signed balance deltas."""

    def __init__(self, db: Database, config: LedgerConfig = None):
        self.db = db
        self.config = config or settings.ledger

    # ==================== Identity ====================

    def normalize_identity(self, identity: str) -> str:
        """Case-normalize an external identity (wallet address)."""
        if not isinstance(identity, str):
            raise InvalidArgument("Identity must be a string", reason="invalid_identity")
        normalized = identity.strip().lower()
        if not normalized or len(normalized) > self.config.max_identity_length:
            raise InvalidArgument("Invalid identity", reason="invalid_identity")
        if any(ch.isspace() for ch in normalized):
            raise InvalidArgument("Identity must not contain whitespace", reason="invalid_identity")
        return normalized

    def default_display_name(self, identity: str) -> str:
        return self.config.display_name_prefix + identity[: self.config.display_name_identity_chars]

    def _clean_display_name(self, display_name: str) -> str:
        name = display_name.strip() if isinstance(display_name, str) else ""
        if (
            not name
            or len(name) > self.config.max_display_name_length
            or not DISPLAY_NAME_PATTERN.match(name)
        ):
            raise InvalidArgument("Invalid display name", reason="invalid_display_name")
        return name

    # ==================== Lookup / Creation ====================

    def get(self, identity: str) -> Account:
        identity = self.normalize_identity(identity)
        row = self.db.get_account_by_identity(identity)
        if row is None:
            raise account_not_found(identity)
        return Account.from_row(row)

    def get_by_id(self, account_id: str) -> Account:
        row = self.db.get_account_by_id(account_id)
        if row is None:
            raise account_not_found(account_id)
        return Account.from_row(row)

    def get_or_create(self, identity: str) -> Account:
        """Idempotent: an existing account is returned untouched."""
        account, _ = self.register(identity)
        return account

    def register(self, identity: str, display_name: Optional[str] = None) -> Tuple[Account, bool]:
        """
        Create an account, or rename an existing one when a display name is given.

        Returns the account and whether it was newly created.
        """
        identity = self.normalize_identity(identity)
        name = self._clean_display_name(display_name) if display_name is not None else None

        with self.db.transaction():
            row = self.db.get_account_by_identity(identity)
            created = row is None
            if created:
                row = self.db.insert_account(identity, name or self.default_display_name(identity))
                logger.info("Account created", extra={"identity": identity})
            elif name is not None and name != row["display_name"]:
                self.db.update_display_name(row["id"], name)
                row = self.db.get_account_by_id(row["id"])
                logger.info("Display name updated", extra={"identity": identity})

        return Account.from_row(row), created

    # ==================== Balance ====================

    def get_balance(self, identity: str) -> int:
        return self.get(identity).balance

    def apply_delta(
        self,
        identity: str,
        delta: int,
        kind: Optional[str] = None,
        room_id: Optional[str] = None,
    ) -> BalanceChange:
        """
        Add a signed delta to an account balance.

        Raises InsufficientFunds (leaving the balance unchanged) when the
        result would be negative, NotFound for unknown identities and
        InvalidArgument for a zero, non-integer or out-of-range delta and for a
        result above `max_balance`.
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidArgument("Delta must be an integer", reason="invalid_delta")
        if delta == 0:
            raise InvalidArgument("Delta must not be zero", reason="invalid_delta")
        if abs(delta) > self.config.max_balance:
            raise InvalidArgument("Delta is too large", reason="invalid_delta")
        identity = self.normalize_identity(identity)
        if kind is None:
            kind = "deposit" if delta > 0 else "withdrawal"

        with self.db.transaction():
            row = self.db.get_account_by_identity(identity)
            if row is None:
                raise account_not_found(identity)

            new_balance = self.db.add_to_balance(row["id"], delta, self.config.max_balance)
            if new_balance is None:
                if delta > 0:
                    logger.warning(
                        "Delta rejected: balance limit",
                        extra={"identity": identity, "delta": delta, "balance": row["balance"]},
                    )
                    raise InvalidArgument("Balance would exceed the maximum", reason="balance_limit")
                logger.warning(
                    "Delta rejected: insufficient funds",
                    extra={"identity": identity, "delta": delta, "balance": row["balance"]},
                )
                raise InsufficientFunds(balance=row["balance"], required=-delta)

            self.db.log_entry(row["id"], kind, delta, new_balance, room_id=room_id)
            change = BalanceChange(
                identity=identity,
                balance=new_balance,
                previous_balance=new_balance - delta,
                change=delta,
            )

        logger.info(
            "Delta applied",
            extra={"identity": identity, "delta": delta, "kind": kind, "balance": new_balance},
        )
        return change

    def require_funds(self, account: Account, amount: int, message: str = "Insufficient balance"):
        """Gate an action on the account currently holding at least `amount`."""
        if account.balance < amount:
            logger.warning(
                message,
                extra={"identity": account.identity, "balance": account.balance, "required": amount},
            )
            raise InsufficientFunds(balance=account.balance, required=amount, message=message)

    # ==================== Journal ====================

    def get_transactions(self, identity: str, limit: Optional[int] = None) -> List[LedgerEntry]:
        account = self.get(identity)
        if limit is None:
            limit = self.config.journal_page_size
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise InvalidArgument("Limit must be an integer", reason="invalid_limit")
        if not 0 < limit <= self.config.max_journal_page_size:
            raise InvalidArgument(
                f"Limit must be between 1 and {self.config.max_journal_page_size}", reason="invalid_limit"
            )
        return [LedgerEntry(**row) for row in self.db.get_entries(account.id, limit)]
