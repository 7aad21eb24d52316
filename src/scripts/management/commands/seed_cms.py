"""Seed admin grants and sample articles for local development."""

import uuid

from django.core.management.base import BaseCommand

from access_control.registry import AdminRegistry
from articles.lifecycle import ARCHIVED, DRAFT, PUBLISHED
from articles.models import Article
from articles.repository import ArticleRepository
from authentication.identity import Identity, normalize_email
from authentication.services import TokenService
from realtime.bus import get_change_bus

SEED_ADMIN_EMAIL = "admin@example.com"
# Stable provider id for the demo admin so re-seeding is idempotent.
SEED_ADMIN_ID = str(uuid.uuid5(uuid.NAMESPACE_URL, "cms-seed-admin"))

SEED_ARTICLES = [
    {
        "title": "Welcome to the newsroom",
        "content": "<p>Our first published story.</p>",
        "excerpt": "A short hello.",
        "tags": ["announcements"],
        "categories": ["News"],
        "status": PUBLISHED,
    },
    {
        "title": "Breaking news today",
        "content": "<p>Developing story.</p>",
        "tags": ["breaking"],
        "categories": ["News"],
        "status": PUBLISHED,
    },
    {
        "title": "Work in progress",
        "content": "<p>Not ready yet.</p>",
        "status": DRAFT,
    },
    {
        "title": "Last year's roundup",
        "content": "<p>Kept for the record.</p>",
        "categories": ["Archive"],
        "status": ARCHIVED,
    },
]


def seed_identity(email: str) -> Identity:
    """Deterministic identity for a seeded admin email."""
    email = normalize_email(email)
    if email == SEED_ADMIN_EMAIL:
        return Identity(id=SEED_ADMIN_ID, email=email)
    return Identity(id=str(uuid.uuid5(uuid.NAMESPACE_URL, email)), email=email)


def create_seed_admins(emails=None) -> dict[str, Identity]:
    """Grant admin to ``emails`` (default: the demo admin); return email -> Identity."""
    registry = AdminRegistry()
    admins = {}
    for email in emails or [SEED_ADMIN_EMAIL]:
        identity = seed_identity(email)
        registry.upsert(identity.id, identity.email)
        admins[identity.email] = identity
    return admins


def create_seed_articles(author: Identity) -> list[Article]:
    """Create the sample articles that do not exist yet, through the repository."""
    repository = ArticleRepository(bus=get_change_bus())
    articles = []
    for fields in SEED_ARTICLES:
        existing = Article.objects.filter(title=fields["title"], author_id=author.id).first()
        articles.append(existing or repository.create(dict(fields), author_id=author.id))
    return articles


class Command(BaseCommand):
    """Management command to seed admin grants and sample content."""

    help = (
        "Grant admin privilege to the demo admin (or --admin emails) and create "
        "sample draft/published/archived articles. Use --reset to clear "
        "previously seeded data first."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--admin",
            action="append",
            dest="admins",
            help="Email to grant admin privilege (repeatable).",
        )
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Remove seeded admin grants and sample articles before seeding.",
        )
        parser.add_argument(
            "--print-token",
            action="store_true",
            help="Print a development bearer token for each seeded admin.",
        )

    def handle(self, *args, **options):
        """Entrypoint for the management command."""
        if options.get("reset"):
            self._reset_seeded_data(options.get("admins"))

        self.stdout.write("Seeding CMS data...")
        admins = create_seed_admins(options.get("admins"))
        first_admin = next(iter(admins.values()))
        articles = create_seed_articles(first_admin)
        self.stdout.write(f"{len(admins)} admin(s), {len(articles)} sample article(s).")

        if options.get("print_token"):
            for email, identity in admins.items():
                self.stdout.write(f"{email}: {TokenService.issue_token(identity)}")

        self.stdout.write(self.style.SUCCESS("CMS seed completed."))

    def _reset_seeded_data(self, emails=None) -> None:
        """Remove seeded admin grants and the sample articles only."""
        self.stdout.write("Resetting previously seeded CMS data...")
        identities = [seed_identity(email) for email in emails or [SEED_ADMIN_EMAIL]]
        seeded = Article.objects.filter(
            title__in=[a["title"] for a in SEED_ARTICLES],
            author_id__in=[identity.id for identity in identities],
        ).values_list("pk", flat=True)
        repository = ArticleRepository(bus=get_change_bus())
        for article_id in list(seeded):
            repository.delete(article_id)
        registry = AdminRegistry()
        for identity in identities:
            registry.remove(identity.email)
        self.stdout.write(self.style.WARNING("Seeded CMS data cleared."))
