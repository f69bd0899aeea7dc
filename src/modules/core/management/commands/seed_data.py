from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from modules.catalog.models import Book
from modules.coupons.models import Coupon, DiscountType
from modules.payouts.models import Seller


class Command(BaseCommand):
    help = "Seed database with a small bookstore catalog for development."

    def handle(self, *args, **options):
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        books = self._seed_books()
        seller = self._seed_seller()
        coupons = self._seed_coupons()

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"books={len(books)}, "
                f"seller={seller.name}, "
                f"coupons={len(coupons)}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="operator").exists():
            User.objects.create_user("operator", password="operator123", is_staff=True)
            created += 1
        return created

    def _seed_books(self) -> list[Book]:
        self.stdout.write("Creating books...")
        seed_books = [
            ("dom-casmurro", "Dom Casmurro", "Machado de Assis", "39.90", 25),
            ("memorias-postumas", "Memórias Póstumas de Brás Cubas", "Machado de Assis", "44.90", 15),
            ("vidas-secas", "Vidas Secas", "Graciliano Ramos", "34.50", 10),
            ("grande-sertao", "Grande Sertão: Veredas", "João Guimarães Rosa", "89.00", 5),
            ("a-hora-da-estrela", "A Hora da Estrela", "Clarice Lispector", "29.90", 0),
        ]
        books: list[Book] = []
        for book_id, title, author, price, stock in seed_books:
            book, _ = Book.objects.update_or_create(
                id=book_id,
                defaults={
                    "title": title,
                    "author": author,
                    "price": Decimal(price),
                    "stock": stock,
                    "active": True,
                },
            )
            books.append(book)
        return books

    def _seed_seller(self) -> Seller:
        self.stdout.write("Creating seller...")
        seller, _ = Seller.objects.get_or_create(
            name=settings.STORE_NAME,
            defaults={
                "email": settings.DEFAULT_FROM_EMAIL,
                "pix_key": settings.PAYOUT_FAVORED_KEY or settings.DEFAULT_FROM_EMAIL,
            },
        )
        return seller

    def _seed_coupons(self) -> list[Coupon]:
        self.stdout.write("Creating coupons...")
        seed_coupons = [
            ("LIVRO15", "15 reais off", DiscountType.FIXED, "15.00", "50.00"),
            ("LEITURA10", "10% na primeira compra", DiscountType.PERCENTAGE, "10", "0"),
        ]
        coupons: list[Coupon] = []
        for code, name, discount_type, value, minimum in seed_coupons:
            coupon, _ = Coupon.objects.get_or_create(
                code=code,
                defaults={
                    "name": name,
                    "discount_type": discount_type,
                    "discount_value": Decimal(value),
                    "minimum_order_value": Decimal(minimum),
                },
            )
            coupons.append(coupon)
        return coupons
