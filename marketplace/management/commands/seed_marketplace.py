# Seed Marketplace Management Command
import random
from datetime import datetime, timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone
from faker import Faker

from marketplace.identity import IdentityService
from marketplace.lifecycle import LifecycleEngine
from marketplace.models import Service
from marketplace.store import EntityStore

DEMO_PASSWORD = 'password123'

DEMO_USERS = [
    {
        'key': 'sarah',
        'name': 'Sarah Chen',
        'email': 'sarah.chen@utexas.edu',
        'edu_verified': True,
        'id_verified': True,
        'bio': 'Junior studying Computer Science. Always happy to help fellow Longhorns!',
    },
    {
        'key': 'marcus',
        'name': 'Marcus Johnson',
        'email': 'marcus.j@utexas.edu',
        'edu_verified': True,
        'id_verified': False,
        'bio': 'Sophomore in Business. Offering rides and cleaning services on weekends.',
    },
]

DEMO_SERVICES = [
    {
        'provider': 'sarah',
        'title': 'Help Moving Into Jester Dorm',
        'description': (
            'Need help carrying boxes and furniture up to my room in Jester West. '
            'I have about 10 boxes and a small desk. Should take about 2 hours.'
        ),
        'category': Service.CATEGORY_MOVING_HELP,
        'price': Decimal('40.00'),
        'location': 'Jester West, UT Austin',
        'date_time': '2026-03-01T10:00:00',
    },
    {
        'provider': 'marcus',
        'title': 'Airport Ride to ABIA',
        'description': (
            'Need a ride from campus to Austin-Bergstrom International Airport. '
            'I have two suitcases. Flexible on exact time.'
        ),
        'category': Service.CATEGORY_AIRPORT_RIDES,
        'price': Decimal('25.00'),
        'location': 'UT Austin Campus → ABIA Airport',
        'date_time': '2026-03-05T14:00:00',
    },
    {
        'provider': 'sarah',
        'title': 'Calculus II Tutoring',
        'description': (
            'Offering tutoring for M 408D (Calculus II). I got an A in the class and '
            'can help with integration techniques, series, and more.'
        ),
        'category': Service.CATEGORY_TUTORING,
        'price': Decimal('30.00'),
        'location': 'PCL (Perry-Castañeda Library)',
        'date_time': '2026-02-28T16:00:00',
    },
    {
        'provider': 'marcus',
        'title': 'Apartment Deep Clean',
        'description': (
            'Professional-quality deep cleaning for apartments near campus. Includes '
            'kitchen, bathroom, floors, and surfaces. Supplies included.'
        ),
        'category': Service.CATEGORY_CLEANING,
        'price': Decimal('75.00'),
        'location': 'West Campus Area',
        'date_time': '2026-03-10T09:00:00',
    },
    {
        'provider': 'sarah',
        'title': 'Grocery Run from H-E-B',
        'description': (
            "I'll pick up your groceries from the H-E-B on Hancock. Send me your list "
            "and I'll deliver to your dorm or apartment."
        ),
        'category': Service.CATEGORY_ERRANDS,
        'price': Decimal('15.00'),
        'location': 'H-E-B Hancock Center → Campus',
        'date_time': '2026-02-25T11:00:00',
    },
    {
        'provider': 'marcus',
        'title': 'CS 314 Data Structures Help',
        'description': (
            'Tutoring for CS 314. Can help with linked lists, trees, graphs, sorting '
            'algorithms, and Big-O analysis. Bring your assignments!'
        ),
        'category': Service.CATEGORY_TUTORING,
        'price': Decimal('35.00'),
        'location': 'GDC (Gates Dell Complex)',
        'date_time': '2026-03-02T13:00:00',
    },
]


class Command(BaseCommand):
    help = 'Seeds demo users and service listings when the marketplace is empty.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would be created without saving anything.',
        )
        parser.add_argument(
            '--fake-listings',
            type=int,
            default=0,
            help='Number of extra Faker-generated listings to add.',
        )
        parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Random seed for reproducible fake listings.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        fake_listings = options['fake_listings']

        if fake_listings < 0:
            raise CommandError('--fake-listings must be zero or positive.')

        store = EntityStore()
        identity = IdentityService(store)
        engine = LifecycleEngine(store)

        with transaction.atomic():
            users = self.seed_users(identity, dry_run)
            self.seed_services(engine, users, dry_run)
            if fake_listings:
                self.seed_fake_listings(engine, identity, fake_listings, options['seed'], dry_run)

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Seeding completed successfully.'))

    def seed_users(self, identity, dry_run):
        if identity.list_users():
            self.stdout.write('Users already exist, skipping demo users.')
            return {}

        self.stdout.write(f'Creating {len(DEMO_USERS)} demo users...')
        users = {}
        for profile in DEMO_USERS:
            profile = dict(profile)
            key = profile.pop('key')
            if dry_run:
                self.stdout.write(f'  [DRY-RUN] User {profile["email"]} ({profile["name"]})')
                continue
            users[key] = identity.create_user({**profile, 'password': DEMO_PASSWORD})

        return users

    def seed_services(self, engine, users, dry_run):
        if engine.list_services():
            self.stdout.write('Services already exist, skipping demo services.')
            return

        if not users and not dry_run:
            self.stdout.write(self.style.WARNING('No demo users were created, skipping demo services.'))
            return

        self.stdout.write(f'Creating {len(DEMO_SERVICES)} demo services...')
        for listing in DEMO_SERVICES:
            listing = dict(listing)
            provider_key = listing.pop('provider')
            listing['date_time'] = timezone.make_aware(datetime.fromisoformat(listing['date_time']))
            if dry_run:
                self.stdout.write(f'  [DRY-RUN] Service "{listing["title"]}" by {provider_key}')
                continue
            engine.create_service(users[provider_key].id, listing)

    def seed_fake_listings(self, engine, identity, count, seed, dry_run):
        providers = identity.list_users()
        if not providers:
            self.stdout.write(self.style.WARNING('No users available to own fake listings.'))
            return

        fake = Faker()
        rng = random.Random(seed)
        if seed is not None:
            fake.seed_instance(seed)

        categories = [value for value, _label in Service.CATEGORY_CHOICES]

        self.stdout.write(f'Creating {count} fake listings...')
        for _ in range(count):
            listing = {
                'title': fake.sentence(nb_words=4).rstrip('.'),
                'description': fake.paragraph(nb_sentences=3),
                'category': rng.choice(categories),
                'price': Decimal(rng.randint(500, 15000)) / 100,
                'location': fake.street_address(),
                'date_time': timezone.now() + timedelta(days=rng.randint(1, 60)),
            }
            provider = rng.choice(providers)
            if dry_run:
                self.stdout.write(f'  [DRY-RUN] Service "{listing["title"]}" by {provider.email}')
                continue
            engine.create_service(provider.id, listing)
