from decimal import Decimal
from typing import Dict, Any
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import ErrorKind, ServiceError, fail
from storefront.domain.result import Ok, Result
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.inventory_ledger import InventoryLedger
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

class CartService:
    """
    Prosta implementacja cqrs dla koszyka uzytkownika
    commands (add, remove, clear) modyfikuja stan
    query (get) tylko odczyt, ceny zawsze aktualne z katalogu
    Koszyk czysci webhook po oplaceniu, checkout go nie rusza.
    """

    def __init__(self, db: Session, ledger: InventoryLedger):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.users = UserRepo(db)
        self.ledger = ledger

    #query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        items = self.repo.get_cart_items(user_id)
        products = self.products.get_products(i.product_id for i in items)

        lines = []
        for i in items:
            product = products.get(i.product_id)
            price = product.price if product else Decimal("0.00")
            lines.append({
                "product_id": i.product_id,
                "quantity": i.quantity,
                "price": price,
            })

        total = sum((line["price"] * line["quantity"] for line in lines), Decimal("0.00"))

        #dict przyksztalcany w jsona
        return {
            "user_id": user_id,
            "items": lines,
            "total": total,
        }

    #commands
    def add_product(self, user_id: int, product_id: int, quantity: int) -> Result[Dict[str, Any], ServiceError]:
        if quantity <= 0:
            return fail(ErrorKind.VALIDATION, "Quantity must be greater than 0")

        if self.users.get_user(user_id) is None:
            return fail(ErrorKind.NOT_FOUND, "User not found", user_id=user_id)

        product = self.products.get_product(product_id)
        if not product or not product.is_active:
            return fail(ErrorKind.NOT_FOUND, "Product not found", product_id=product_id)

        existing_item = self.repo.get_cart_item(user_id, product_id)
        wanted = quantity + (existing_item.quantity if existing_item else 0)

        # miekka walidacja - twarda jest dopiero przy rezerwacji w checkout
        available = self.ledger.available(product_id)
        if available < wanted:
            return fail(
                ErrorKind.INSUFFICIENT_STOCK,
                f"Insufficient stock for {product.name}. Available: {available}, Requested: {wanted}",
                product_id=product_id,
                available=available,
                requested=wanted,
            )

        try:
            try:
                if existing_item:
                    logger.info(
                        f"Produkt {product_id} już jest w koszyku, zwiekszam ilosc "
                        f"z {existing_item.quantity} do {wanted}"
                    )
                    self.repo.increment_quantity(user_id, product_id, quantity)
                else:
                    logger.info(f"Dodaje nowy produkt {product_id} do koszyka uzytkownika {user_id}")
                    self.repo.add_cart_item(
                        CartItemModel(
                            user_id=user_id,
                            product_id=product_id,
                            quantity=quantity,
                        )
                    )
                self.repo.commit()
            except IntegrityError:
                # rownolegly request dodal ten produkt miedzy odczytem a insertem
                self.repo.rollback()
                logger.info(f"Produkt {product_id} dodany rownolegle do koszyka {user_id}, scalam ilosc")
                self.repo.increment_quantity(user_id, product_id, quantity)
                self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Blad podczas dodawania produktu {product_id} do koszyka {user_id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Failed to update cart")

        return Ok(self.get_cart(user_id))

    def remove_product(self, user_id: int, product_id: int) -> Result[Dict[str, Any], ServiceError]:
        removed = self.repo.delete_cart_item(user_id, product_id)
        if not removed:
            return fail(ErrorKind.NOT_FOUND, "Cart item not found", product_id=product_id)

        self.repo.commit()
        logger.info(f"Produkt {product_id} usunięty z koszyka uzytkownika {user_id}")
        return Ok(self.get_cart(user_id))

    def clear_cart(self, user_id: int) -> Dict[str, Any]:
        self.repo.clear_cart(user_id)
        self.repo.commit()
        return self.get_cart(user_id)
