"""
PriceSelector -- catalog prices in effect on a business date.

The price in effect for a product on date D is the ProductPrice row with the
greatest effective_date <= D.  When several rows share that date, the most
recently created wins.
"""

from sqlalchemy import and_, func, select

from ledger_kernel.domain.dtos import CatalogPrice
from ledger_kernel.models import ProductPrice
from ledger_kernel.selectors.base import BaseSelector


def price_to_dto(row: ProductPrice) -> CatalogPrice:
    return CatalogPrice(
        product_id=row.product_id,
        retail_price=row.retail_price,
        wholesale_price=row.wholesale_price,
        effective_date=row.effective_date,
    )


class PriceSelector(BaseSelector):
    """Queries over product_prices."""

    def price_on(self, product_id: str, business_date: str) -> CatalogPrice | None:
        """Price in effect for ``product_id`` on ``business_date``, or None."""
        stmt = (
            select(ProductPrice)
            .where(
                ProductPrice.product_id == product_id,
                ProductPrice.effective_date <= business_date,
            )
            .order_by(
                ProductPrice.effective_date.desc(),
                ProductPrice.created_at.desc(),
                ProductPrice.id.desc(),
            )
            .limit(1)
        )
        row = self.session.execute(stmt).scalar_one_or_none()
        return price_to_dto(row) if row is not None else None

    def history(self, product_id: str) -> list[CatalogPrice]:
        """All price rows for a product, oldest effective date first."""
        stmt = (
            select(ProductPrice)
            .where(ProductPrice.product_id == product_id)
            .order_by(ProductPrice.effective_date, ProductPrice.created_at)
        )
        return [price_to_dto(row) for row in self.session.execute(stmt).scalars()]

    def latest_prices(self) -> dict[str, CatalogPrice]:
        """product_id -> its most recent price row (any effective date)."""
        latest = (
            select(
                ProductPrice.product_id.label("product_id"),
                func.max(ProductPrice.effective_date).label("max_date"),
            )
            .group_by(ProductPrice.product_id)
            .subquery()
        )
        stmt = (
            select(ProductPrice)
            .join(
                latest,
                and_(
                    ProductPrice.product_id == latest.c.product_id,
                    ProductPrice.effective_date == latest.c.max_date,
                ),
            )
            .order_by(ProductPrice.product_id, ProductPrice.created_at)
        )
        result: dict[str, CatalogPrice] = {}
        # Later created_at overwrites earlier on the same effective date
        for row in self.session.execute(stmt).scalars():
            result[row.product_id] = price_to_dto(row)
        return result
