# 📄 File: app/modules/subscription_management/infrastructure/database/promotional_code_repository_impl.py
# 🧭 Purpose (Layman Explanation):
# Looks up and stores discount codes, and counts a use of a code without ever going past its limit.
# 🧪 Purpose (Technical Summary):
# SQLAlchemy implementation of PromotionalCodeRepository; redemption is one conditional UPDATE
# so concurrent subscribers cannot exceed usage_limit.
# 🔗 Dependencies:
# SQLAlchemy async session, PromotionalCodeModel
# 🔄 Connected Modules / Calls From:
# PromotionalCodeService via presentation dependencies

import logging
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.exceptions import DatabaseError
from app.modules.subscription_management.domain.models.promotional_code import PromotionalCode
from app.modules.subscription_management.domain.repositories.promotional_code_repository import (
    PromotionalCodeRepository,
)
from app.modules.subscription_management.infrastructure.database.models import PromotionalCodeModel

logger = logging.getLogger(__name__)


class PromotionalCodeRepositoryImpl(PromotionalCodeRepository):
    """SQLAlchemy implementation of promotional code repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_domain(model: PromotionalCodeModel) -> PromotionalCode:
        return PromotionalCode(
            id=model.id,
            code=model.code,
            description=model.description,
            discount_type=model.discount_type,
            discount_value=model.discount_value,
            tier_applicable=model.tier_applicable or None,
            usage_limit=model.usage_limit,
            usage_count=model.usage_count,
            expires_at=model.expires_at,
            is_active=model.is_active,
            created_at=model.created_at,
        )

    async def get_by_code(self, code: str) -> Optional[PromotionalCode]:
        query = select(PromotionalCodeModel).where(PromotionalCodeModel.code == code.strip().upper())
        try:
            result = await self.session.execute(query)
            model = result.scalar_one_or_none()
            return self._to_domain(model) if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error getting promotional code {code}: {e}")
            raise DatabaseError("Failed to load promotional code", operation="select") from e

    async def list_all(self) -> List[PromotionalCode]:
        query = select(PromotionalCodeModel).order_by(PromotionalCodeModel.created_at.desc())
        try:
            result = await self.session.execute(query)
            return [self._to_domain(model) for model in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing promotional codes: {e}")
            raise DatabaseError("Failed to list promotional codes", operation="select") from e

    async def add(self, promotional_code: PromotionalCode) -> PromotionalCode:
        model = PromotionalCodeModel(
            id=promotional_code.id,
            code=promotional_code.code,
            description=promotional_code.description,
            discount_type=promotional_code.discount_type.value,
            discount_value=promotional_code.discount_value,
            tier_applicable=(
                [tier.value for tier in promotional_code.tier_applicable]
                if promotional_code.tier_applicable else None
            ),
            usage_limit=promotional_code.usage_limit,
            usage_count=promotional_code.usage_count,
            expires_at=promotional_code.expires_at,
            is_active=promotional_code.is_active,
            created_at=promotional_code.created_at,
        )
        try:
            self.session.add(model)
            await self.session.flush()
            return promotional_code
        except SQLAlchemyError as e:
            logger.error(f"Error creating promotional code {promotional_code.code}: {e}")
            raise DatabaseError("Failed to create promotional code", operation="insert") from e

    async def redeem(self, code: str) -> bool:
        query = (
            update(PromotionalCodeModel)
            .where(
                PromotionalCodeModel.code == code,
                PromotionalCodeModel.is_active.is_(True),
                or_(
                    PromotionalCodeModel.usage_limit.is_(None),
                    PromotionalCodeModel.usage_count < PromotionalCodeModel.usage_limit,
                ),
            )
            .values(usage_count=PromotionalCodeModel.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(query)
            return result.rowcount == 1
        except SQLAlchemyError as e:
            logger.error(f"Error redeeming promotional code {code}: {e}")
            raise DatabaseError("Failed to redeem promotional code", operation="update") from e
