"""
Service layer for catalog and counterparty maintenance.

Manages categories, products, product price lists, customers and suppliers.
These are user-driven records; the ledger reads them but never mutates them.

Returns frozen DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select

from ledger_kernel.db.types import round_money, to_decimal
from ledger_kernel.domain.clock import validate_business_date
from ledger_kernel.domain.dtos import CatalogPrice
from ledger_kernel.exceptions import (
    CategoryNotFoundError,
    CustomerNotFoundError,
    InvalidPriceError,
    ProductNotFoundError,
    SupplierNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import Category, Customer, Product, ProductPrice, Supplier
from ledger_kernel.selectors.price_selector import price_to_dto
from ledger_kernel.services.base import BaseService

logger = get_logger("services.catalog")

# Fields update_product may change
PRODUCT_DESCRIPTIVE_FIELDS = ("name", "barcode", "category_id", "description", "sku", "shelf")

_UNSET = object()


@dataclass(frozen=True)
class CategoryInfo:
    id: str
    name: str
    created_at: str


@dataclass(frozen=True)
class ProductInfo:
    """Immutable DTO for product data."""

    id: str
    name: str
    barcode: str | None
    category_id: str | None
    description: str | None
    sku: str | None
    shelf: str | None
    created_at: str


@dataclass(frozen=True)
class PartyInfo:
    """Immutable DTO for a customer or supplier."""

    id: str
    name: str
    phone: str | None
    address: str | None
    created_at: str
    credit_limit: Decimal | None = None


class CatalogService(BaseService[Product]):
    """
    Service for reference data.

    Contract:
        Flushes within the caller's transaction.  Updates touch descriptive
        fields only.  Product identity and created_at never change.
    """

    # ------------------------------------------------------------------
    # DTO mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _product_dto(product: Product) -> ProductInfo:
        return ProductInfo(
            id=product.id,
            name=product.name,
            barcode=product.barcode,
            category_id=product.category_id,
            description=product.description,
            sku=product.sku,
            shelf=product.shelf,
            created_at=product.created_at,
        )

    @staticmethod
    def _party_dto(party: Customer | Supplier) -> PartyInfo:
        return PartyInfo(
            id=party.id,
            name=party.name,
            phone=party.phone,
            address=party.address,
            created_at=party.created_at,
            credit_limit=getattr(party, "credit_limit", None),
        )

    def _get_product(self, product_id: str) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def _require_category(self, category_id: str | None) -> None:
        if category_id is not None and self.session.get(Category, category_id) is None:
            raise CategoryNotFoundError(category_id)

    @staticmethod
    def _require_name(name: str | None, kind: str) -> str:
        if not name or not name.strip():
            raise ValueError(f"{kind} name is required")
        return name.strip()

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def create_category(self, name: str) -> CategoryInfo:
        category = Category(
            name=self._require_name(name, "Category"),
            created_at=self.clock_service.now(),
        )
        self.session.add(category)
        self.session.flush()
        logger.info("category_created", extra={"category_id": category.id})
        return CategoryInfo(id=category.id, name=category.name, created_at=category.created_at)

    def list_categories(self) -> list[CategoryInfo]:
        stmt = select(Category).order_by(Category.name)
        return [
            CategoryInfo(id=c.id, name=c.name, created_at=c.created_at)
            for c in self.session.execute(stmt).scalars()
        ]

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def create_product(
        self,
        name: str,
        barcode: str | None = None,
        category_id: str | None = None,
        description: str | None = None,
        sku: str | None = None,
        shelf: str | None = None,
    ) -> ProductInfo:
        """
        Create a product.

        Raises:
            CategoryNotFoundError: ``category_id`` given but unknown.
            ValueError: blank name.
        """
        self._require_category(category_id)
        product = Product(
            name=self._require_name(name, "Product"),
            barcode=barcode,
            category_id=category_id,
            description=description,
            sku=sku,
            shelf=shelf,
            created_at=self.clock_service.now(),
        )
        self.session.add(product)
        self.session.flush()
        logger.info("product_created", extra={"product_id": product.id})
        return self._product_dto(product)

    def update_product(self, product_id: str, **changes) -> ProductInfo:
        """
        Change descriptive fields of a product.

        Raises:
            ProductNotFoundError, CategoryNotFoundError.
            ValueError: a non-descriptive field was passed.
        """
        unknown = set(changes) - set(PRODUCT_DESCRIPTIVE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update product fields: {sorted(unknown)}")
        product = self._get_product(product_id)
        if "name" in changes:
            changes["name"] = self._require_name(changes["name"], "Product")
        if "category_id" in changes:
            self._require_category(changes["category_id"])
        for key, value in changes.items():
            setattr(product, key, value)
        self.session.flush()
        return self._product_dto(product)

    def get_product(self, product_id: str) -> ProductInfo:
        return self._product_dto(self._get_product(product_id))

    def find_by_barcode(self, barcode: str) -> ProductInfo | None:
        stmt = select(Product).where(Product.barcode == barcode).order_by(Product.created_at)
        product = self.session.execute(stmt).scalars().first()
        return self._product_dto(product) if product is not None else None

    def list_products(self) -> list[ProductInfo]:
        stmt = select(Product).order_by(Product.name)
        return [self._product_dto(p) for p in self.session.execute(stmt).scalars()]

    def delete_product(self, product_id: str) -> None:
        """
        Delete an unreferenced product and its price rows.

        Raises:
            ProductReferencedError: invoice items or movements reference it.
        """
        product = self._get_product(product_id)
        with self.session.begin_nested():
            for price in list(product.prices):
                self.session.delete(price)
            self.session.delete(product)
            self.session.flush()
        logger.info("product_deleted", extra={"product_id": product_id})

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------

    def set_product_price(
        self,
        product_id: str,
        retail_price,
        wholesale_price,
        effective_date: str | None = None,
    ) -> CatalogPrice:
        """
        Add a price row effective from ``effective_date`` (default: today).

        Raises:
            ProductNotFoundError, InvalidPriceError.
        """
        self._get_product(product_id)
        retail = self._parse_price(product_id, "retail_price", retail_price)
        wholesale = self._parse_price(product_id, "wholesale_price", wholesale_price)
        effective_date = validate_business_date(effective_date or self.clock_service.today())

        row = ProductPrice(
            product_id=product_id,
            retail_price=retail,
            wholesale_price=wholesale,
            effective_date=effective_date,
            created_at=self.clock_service.now(),
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "product_price_set",
            extra={
                "product_id": product_id,
                "retail_price": retail,
                "wholesale_price": wholesale,
                "effective_date": effective_date,
            },
        )
        return price_to_dto(row)

    @staticmethod
    def _parse_price(product_id: str, field: str, value) -> Decimal:
        try:
            price = to_decimal(value)
        except ValueError:
            raise InvalidPriceError(product_id, field, value) from None
        if price < 0:
            raise InvalidPriceError(product_id, field, value)
        return round_money(price)

    # ------------------------------------------------------------------
    # Customers and suppliers
    # ------------------------------------------------------------------

    def create_customer(
        self,
        name: str,
        phone: str | None = None,
        address: str | None = None,
        credit_limit=None,
    ) -> PartyInfo:
        customer = Customer(
            name=self._require_name(name, "Customer"),
            phone=phone,
            address=address,
            credit_limit=to_decimal(credit_limit) if credit_limit is not None else None,
            created_at=self.clock_service.now(),
        )
        self.session.add(customer)
        self.session.flush()
        logger.info("customer_created", extra={"customer_id": customer.id})
        return self._party_dto(customer)

    def update_customer(
        self,
        customer_id: str,
        name: str | None = None,
        phone=_UNSET,
        address=_UNSET,
        credit_limit=_UNSET,
    ) -> PartyInfo:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        if name is not None:
            customer.name = self._require_name(name, "Customer")
        if phone is not _UNSET:
            customer.phone = phone
        if address is not _UNSET:
            customer.address = address
        if credit_limit is not _UNSET:
            customer.credit_limit = (
                to_decimal(credit_limit) if credit_limit is not None else None
            )
        self.session.flush()
        return self._party_dto(customer)

    def get_customer(self, customer_id: str) -> PartyInfo:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return self._party_dto(customer)

    def create_supplier(
        self,
        name: str,
        phone: str | None = None,
        address: str | None = None,
    ) -> PartyInfo:
        supplier = Supplier(
            name=self._require_name(name, "Supplier"),
            phone=phone,
            address=address,
            created_at=self.clock_service.now(),
        )
        self.session.add(supplier)
        self.session.flush()
        logger.info("supplier_created", extra={"supplier_id": supplier.id})
        return self._party_dto(supplier)

    def update_supplier(
        self,
        supplier_id: str,
        name: str | None = None,
        phone=_UNSET,
        address=_UNSET,
    ) -> PartyInfo:
        supplier = self.session.get(Supplier, supplier_id)
        if supplier is None:
            raise SupplierNotFoundError(supplier_id)
        if name is not None:
            supplier.name = self._require_name(name, "Supplier")
        if phone is not _UNSET:
            supplier.phone = phone
        if address is not _UNSET:
            supplier.address = address
        self.session.flush()
        return self._party_dto(supplier)

    def get_supplier(self, supplier_id: str) -> PartyInfo:
        supplier = self.session.get(Supplier, supplier_id)
        if supplier is None:
            raise SupplierNotFoundError(supplier_id)
        return self._party_dto(supplier)
