from typing import Optional

from sqlalchemy import select, update

from mailcraft.db.models import Account
from mailcraft.db.repositories.base import Repository


class AccountsRepository(Repository):
    def get(self, account_id: str) -> Optional[Account]:
        return self.session.get(Account, account_id)

    def get_by_stripe_customer(self, customer_id: str) -> Optional[Account]:
        stmt = select(Account).where(Account.stripe_customer_id == customer_id)
        return self.session.scalars(stmt).first()

    def get_or_create(
        self,
        account_id: str,
        *,
        is_anonymous: bool,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Account:
        account = self.get(account_id)
        if account:
            if email and account.email != email:
                account.email = email
                self._commit()
                self.session.refresh(account)
            return account
        account = Account(
            id=account_id,
            is_anonymous=is_anonymous,
            email=email,
            display_name=display_name,
        )
        self.session.add(account)
        self._commit()
        self.session.refresh(account)
        return account

    def update(self, account: Account, **fields) -> Account:
        for key, value in fields.items():
            setattr(account, key, value)
        self._commit()
        self.session.refresh(account)
        return account

    def increment_usage(self, account: Account) -> Account:
        # Incremented in SQL so concurrent requests cannot overwrite each other's count.
        stmt = (
            update(Account)
            .where(Account.id == account.id)
            .values(api_usage_this_month=Account.api_usage_this_month + 1)
        )
        self.session.execute(stmt)
        self._commit()
        self.session.refresh(account)
        return account

    def delete(self, account: Account) -> None:
        self.session.delete(account)
        self._commit()
