"""Rewards repository - Database operations for points ledgers"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import CustomerRewards, RewardTransaction


class RewardsRepository:
    @staticmethod
    def get_ledger(db: Session, user_id: str) -> Optional[CustomerRewards]:
        return db.query(CustomerRewards).filter(CustomerRewards.user_id == user_id).first()

    @staticmethod
    def create_ledger(db: Session, user_id: str, email: Optional[str]) -> CustomerRewards:
        ledger = CustomerRewards(
            user_id=user_id,
            customer_email=email,
            total_points=0,
            points_lifetime=0,
            points_pending=0,
            current_tier="bronze",
        )
        db.add(ledger)
        db.flush()
        return ledger

    @staticmethod
    def add_transaction(db: Session, ledger: CustomerRewards, **transaction_data) -> RewardTransaction:
        transaction = RewardTransaction(customer_reward_id=ledger.id, **transaction_data)
        db.add(transaction)
        return transaction
