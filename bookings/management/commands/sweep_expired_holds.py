from django.core.management.base import BaseCommand

from bookings.expiry import sweep_expired


class Command(BaseCommand):
    help = 'Cancel pending bookings whose hold has expired and release their slots'

    def handle(self, *args, **options):
        released = sweep_expired()
        if not released:
            self.stdout.write('No expired holds found.')
            return
        self.stdout.write(self.style.SUCCESS(f'Released {released} expired booking(s).'))
