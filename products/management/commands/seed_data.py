"""
Management command to seed the database with sample data.

Generates:
- Products across every category with random prices and stock
- Users with preferences
- A few saved products per user

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
"""
import random
from decimal import Decimal
from django.core.management.base import BaseCommand
from django.db import transaction

from products.models import Product
from users.models import User, Preference


class Command(BaseCommand):
    help = 'Seed the database with sample users, products and saved products'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--products',
            type=int,
            default=200,
            help='Number of products to create (default: 200)',
        )
        parser.add_argument(
            '--users',
            type=int,
            default=25,
            help='Number of users to create (default: 25)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            products = self._create_products(options['products'])
            users = self._create_users(options['users'])
            self._save_products(users, products)

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear all existing data."""
        from orders.models import OrderItem, Order

        OrderItem.objects.all().delete()
        Order.objects.all().delete()
        User.objects.all().delete()
        Product.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_products(self, count):
        """Create sample products with realistic data."""
        product_templates = {
            Product.Category.FASHION: [
                'Cotton T-Shirt', 'Denim Jeans', 'Wool Sweater', 'Rain Jacket', 'Leather Belt'
            ],
            Product.Category.BEAUTY: [
                'Face Serum', 'Lip Balm', 'Hand Cream', 'Sunscreen SPF50', 'Hair Oil'
            ],
            Product.Category.SPORTS: [
                'Yoga Mat', 'Dumbbells Set', 'Running Belt', 'Tennis Racket', 'Swimming Goggles'
            ],
            Product.Category.ELECTRONICS: [
                'Wireless Headphones', 'Bluetooth Speaker', 'Power Bank', 'Smart Watch', 'Webcam HD'
            ],
            Product.Category.HOME_INTERIOR: [
                'Throw Pillow', 'Area Rug', 'Wall Clock', 'Picture Frame', 'Floor Lamp'
            ],
            Product.Category.HOUSEHOLD_SUPPLIES: [
                'Laundry Detergent', 'Paper Towels', 'Storage Bins', 'Trash Bags', 'Dish Soap'
            ],
            Product.Category.KITCHENWARE: [
                'Kitchen Knife Set', 'Cast Iron Pan', 'Cutting Board', 'Mixing Bowls', 'Kettle'
            ],
        }

        adjectives = [
            'Premium', 'Deluxe', 'Classic', 'Modern', 'Compact',
            'Portable', 'Eco-Friendly', 'Handmade', 'Essential', 'Ultimate'
        ]

        products = []
        self.stdout.write(f'Creating {count} products...')

        for i in range(count):
            category = random.choice(list(product_templates))
            base_name = random.choice(product_templates[category])
            name = f"{random.choice(adjectives)} {base_name}"

            products.append(Product(
                name=name,
                description=random.choice([
                    f"High-quality {base_name.lower()} for everyday use.",
                    f"Best-selling {base_name.lower()} with great reviews.",
                    "",
                ]),
                category=category,
                # Random price between $5 and $500
                price=Decimal(str(round(random.uniform(5, 500), 2))),
                stock=random.randint(0, 200),
            ))

        Product.objects.bulk_create(products)
        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} products'))
        return products

    def _create_users(self, count):
        """Create sample users, each with a preference record."""
        first_names = ['Minji', 'Alex', 'Sam', 'Jordan', 'Yuna', 'Chris', 'Taylor', 'Jisoo']
        last_names = ['Kim', 'Lee', 'Park', 'Smith', 'Garcia', 'Chen', 'Novak', 'Singh']

        users = []
        for i in range(count):
            first = random.choice(first_names)
            last = random.choice(last_names)
            users.append(User(
                email=f"{first.lower()}.{last.lower()}.{i}@example.com",
                first_name=first,
                last_name=last,
                address=f"{random.randint(1, 999)} Market Street",
            ))

        User.objects.bulk_create(users)
        Preference.objects.bulk_create([
            Preference(user=user, receive_email=random.random() > 0.5)
            for user in users
        ])
        self.stdout.write(self.style.SUCCESS(f'Created {len(users)} users'))
        return users

    def _save_products(self, users, products):
        """Give each user a handful of saved products."""
        if not products:
            return
        SavedProduct = User.saved_products.through
        edges = []
        for user in users:
            for product in random.sample(products, k=min(len(products), random.randint(0, 5))):
                edges.append(SavedProduct(user_id=user.pk, product_id=product.pk))
        SavedProduct.objects.bulk_create(edges, ignore_conflicts=True)
        self.stdout.write(self.style.SUCCESS(f'Created {len(edges)} saved products'))
