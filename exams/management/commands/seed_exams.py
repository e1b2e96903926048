from django.core.management.base import BaseCommand, CommandError

from exams.demo_exams import DEMO_EXAMS, seed_demo_exam


class Command(BaseCommand):
    help = 'Loads demo exams (and their band maps). Safe to run more than once.'

    def add_arguments(self, parser):
        parser.add_argument('slugs', nargs='*', type=str, help=f"Demo slugs, default all: {', '.join(DEMO_EXAMS)}")

    def handle(self, *args, **options):
        slugs = options['slugs'] or list(DEMO_EXAMS)
        unknown = [slug for slug in slugs if slug not in DEMO_EXAMS]
        if unknown:
            raise CommandError(f"Unknown demo exam(s): {', '.join(unknown)}")

        for slug in slugs:
            exam, created = seed_demo_exam(slug)
            if created:
                self.stdout.write(self.style.SUCCESS(f"Created {exam.title} (id={exam.id})"))
            else:
                self.stdout.write(self.style.WARNING(f"{exam.title} already exists (id={exam.id}), skipped"))
