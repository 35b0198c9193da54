# 📄 File: app/modules/subscription_management/domain/repositories/promotional_code_repository.py
# 🧭 Purpose (Layman Explanation):
# Defines how discount codes are looked up, created and counted when someone uses one.
# 🧪 Purpose (Technical Summary):
# Abstract repository for promotional codes; redemption is an atomic conditional increment.
# 🔗 Dependencies:
# - abc, PromotionalCode domain model
# 🔄 Connected Modules / Calls From:
# - PromotionalCodeService, SubscriptionLifecycleService
# - PromotionalCodeRepositoryImpl

from abc import ABC, abstractmethod
from typing import List, Optional

from app.modules.subscription_management.domain.models.promotional_code import PromotionalCode


class PromotionalCodeRepository(ABC):
    """
    Abstract repository interface for promotional codes.
    """

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[PromotionalCode]:
        """Case-insensitive lookup."""
        pass

    @abstractmethod
    async def list_all(self) -> List[PromotionalCode]:
        pass

    @abstractmethod
    async def add(self, promotional_code: PromotionalCode) -> PromotionalCode:
        pass

    @abstractmethod
    async def redeem(self, code: str) -> bool:
        """
        Increment the usage count of an active code.

        Returns False without changing anything when the code is missing,
        inactive, or already at its usage limit.
        """
        pass
